import csv
import json
from pathlib import Path
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from .default_rules import LOG_BASENAME
from .models import LogEntry

LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
CSV_FIELDS = ["timestamp", "level", "message", "source", "destination", "reason", "error", "details"]


class RunLogger:
    """Append-only run log. Writes a JSONL and a CSV stream into every log directory.

    A failing destination (e.g. an unreachable network share) is reported once on the
    console and skipped for the rest of the run; it never interrupts the caller.
    """
    def __init__(
        self,
        log_dirs: Iterable[Path] = (),
        echo: bool = True,
        verbose: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.log_dirs: List[Path] = [Path(d) for d in log_dirs]
        self.echo = echo
        self.verbose = verbose
        self.clock = clock
        self.entries: List[LogEntry] = []
        self._broken: set = set()

    def log(self, level: str, message: str, **data: Any) -> Optional[LogEntry]:
        level = level.upper()
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        if level == "DEBUG" and not self.verbose:
            return None

        entry = LogEntry(
            timestamp=self.clock().replace(microsecond=0),
            level=level,
            message=message,
            data={k: _plain(v) for k, v in data.items() if v is not None},
        )
        self.entries.append(entry)

        if self.echo:
            print(f"[{entry.timestamp.isoformat()}] {level:5} {message}")

        for log_dir in self.log_dirs:
            if log_dir in self._broken:
                continue
            try:
                self._write(log_dir, entry)
            except OSError as exc:
                self._broken.add(log_dir)
                if self.echo:
                    print(f"Log destination unavailable, skipping for this run: {log_dir} ({exc})")
        return entry

    def info(self, message: str, **data: Any) -> Optional[LogEntry]:
        return self.log("INFO", message, **data)

    def warn(self, message: str, **data: Any) -> Optional[LogEntry]:
        return self.log("WARN", message, **data)

    def error(self, message: str, **data: Any) -> Optional[LogEntry]:
        return self.log("ERROR", message, **data)

    def debug(self, message: str, **data: Any) -> Optional[LogEntry]:
        return self.log("DEBUG", message, **data)

    def by_level(self, level: str) -> List[LogEntry]:
        return [e for e in self.entries if e.level == level.upper()]

    def _write(self, log_dir: Path, entry: LogEntry) -> None:
        log_dir.mkdir(parents=True, exist_ok=True)

        # JSONL append
        record: Dict[str, Any] = {
            "timestamp": entry.timestamp.isoformat(),
            "level": entry.level,
            "message": entry.message,
        }
        record.update(entry.data)
        with (log_dir / f"{LOG_BASENAME}.jsonl").open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

        # CSV append, header only once
        csv_path = log_dir / f"{LOG_BASENAME}.csv"
        new_file = not csv_path.exists()
        extra = {k: v for k, v in entry.data.items() if k not in CSV_FIELDS}
        with csv_path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if new_file:
                writer.writerow(CSV_FIELDS)
            writer.writerow([
                entry.timestamp.isoformat(),
                entry.level,
                entry.message,
                entry.data.get("source", ""),
                entry.data.get("destination", ""),
                entry.data.get("reason", ""),
                entry.data.get("error", ""),
                json.dumps(extra, ensure_ascii=False) if extra else "",
            ])


def _plain(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, datetime):
        return value.replace(microsecond=0).isoformat()
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value  # enums
    return value
