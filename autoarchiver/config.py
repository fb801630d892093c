from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
import json
from typing import Any, Dict, List, Optional, Tuple

from . import default_rules as d
from .errors import ConfigError
from .models import AgeBasis, Combine, ConflictPolicy, TimeRuleSpec

RULE_KEYS = {"untouched_days", "age_days", "combine", "age_basis"}


@dataclass(frozen=True)
class ArchiverConfig:
    """Fully resolved run parameters. Built once, then handed to each component."""
    source: Optional[Path] = None
    destination: Optional[Path] = None
    log_dirs: Tuple[Path, ...] = ()
    include: Tuple[str, ...] = tuple(d.DEFAULT_INCLUDE)
    exclude: Tuple[str, ...] = tuple(d.DEFAULT_EXCLUDE)
    skip_hidden: bool = True
    deep_folder_scan: bool = True
    file_rule: TimeRuleSpec = field(default_factory=lambda: _rule(d.DEFAULT_FILE_RULE, "files"))
    folder_rule: TimeRuleSpec = field(default_factory=lambda: _rule(d.DEFAULT_FOLDER_RULE, "folders"))
    archive_patterns: Tuple[str, ...] = tuple(d.DEFAULT_ARCHIVE_PATTERNS)
    archive_grace_minutes: float = d.DEFAULT_ARCHIVE_GRACE_MINUTES
    conflict_policy: ConflictPolicy = ConflictPolicy(d.DEFAULT_CONFLICT_POLICY)
    resilient_copy: bool = False
    large_file_mb: float = d.DEFAULT_LARGE_FILE_MB
    copy_attempts: int = d.DEFAULT_COPY_ATTEMPTS
    copy_wait_seconds: float = d.DEFAULT_COPY_WAIT_SECONDS
    max_operations: int = d.DEFAULT_MAX_OPERATIONS
    min_free_mb: float = d.DEFAULT_MIN_FREE_MB
    remove_empty_dirs: bool = True
    dry_run: bool = False
    verbose: bool = False

    @property
    def large_file_bytes(self) -> int:
        return int(self.large_file_mb * 1024 * 1024)

    def with_overrides(self, overrides: Dict[str, Any]) -> "ArchiverConfig":
        """Return a copy with the given raw (file-style) values applied. None means "not given"."""
        given = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **_parse(given, base=self))


def load_config(path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> ArchiverConfig:
    """Defaults, then the JSON file (if any), then command-line overrides."""
    config = ArchiverConfig()
    if path is not None:
        config = config.with_overrides(read_config_file(path))
    if overrides:
        config = config.with_overrides(overrides)
    return config


def read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    # Relative paths in the file are relative to the file itself
    for key in ("source", "destination"):
        if isinstance(data.get(key), str):
            data[key] = str((path.parent / Path(data[key]).expanduser()).resolve())
    if "log_dirs" in data:
        data["log_dirs"] = [str((path.parent / Path(p).expanduser()).resolve()) for p in _as_list(data["log_dirs"], "log_dirs")]
    return data


def _parse(raw: Dict[str, Any], base: ArchiverConfig) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("source", "destination"):
            out[key] = Path(value).expanduser()
        elif key == "log_dirs":
            out[key] = tuple(Path(p).expanduser() for p in _as_list(value, key))
        elif key in ("include", "exclude", "archive_patterns"):
            out[key] = tuple(_as_list(value, key))
        elif key == "files":
            out["file_rule"] = _rule(value, key, base.file_rule)
        elif key == "folders":
            out["folder_rule"] = _rule(value, key, base.folder_rule)
        elif key == "conflict_policy":
            out[key] = _enum(ConflictPolicy, value, key)
        elif key in ("skip_hidden", "deep_folder_scan", "resilient_copy", "remove_empty_dirs", "dry_run", "verbose"):
            if not isinstance(value, bool):
                raise ConfigError(f"'{key}' must be true or false, got {value!r}")
            out[key] = value
        elif key in ("copy_attempts", "max_operations"):
            out[key] = int(_number(value, key))
        elif key in ("archive_grace_minutes", "large_file_mb", "copy_wait_seconds", "min_free_mb"):
            out[key] = _number(value, key)
        else:
            raise ConfigError(f"Unknown config key: {key}")
    return out


def _rule(raw: Any, key: str, base: Optional[TimeRuleSpec] = None) -> TimeRuleSpec:
    if not isinstance(raw, dict):
        raise ConfigError(f"'{key}' must be an object with {sorted(RULE_KEYS)}")
    unknown = set(raw) - RULE_KEYS
    if unknown:
        raise ConfigError(f"Unknown keys in '{key}': {sorted(unknown)}")
    spec = base or TimeRuleSpec()
    if "untouched_days" in raw:
        spec = replace(spec, untouched=_days(raw["untouched_days"], f"{key}.untouched_days"))
    if "age_days" in raw:
        spec = replace(spec, age=_days(raw["age_days"], f"{key}.age_days"))
    if raw.get("combine") is not None:
        spec = replace(spec, combine=_enum(Combine, raw["combine"], f"{key}.combine"))
    if raw.get("age_basis") is not None:
        spec = replace(spec, age_basis=_enum(AgeBasis, raw["age_basis"], f"{key}.age_basis"))
    return spec


def _days(value: Any, key: str) -> Optional[timedelta]:
    if value is None:
        return None
    return timedelta(days=_number(value, key))


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    if value < 0:
        raise ConfigError(f"'{key}' must not be negative")
    return value


def _enum(enum_cls, value: Any, key: str):
    # Be kind: accept any case, and "modified"/"write" style aliases
    text = str(value).strip().lower()
    text = {"lastwrite": "modified", "last_write": "modified", "write": "modified",
            "creation": "created", "rename_with_timestamp": "rename"}.get(text, text)
    try:
        return enum_cls(text)
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise ConfigError(f"'{key}' must be one of: {choices} (got {value!r})") from None


def _as_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a string or a list of strings")
    return list(value)
