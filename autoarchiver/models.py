from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol


class ItemKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class Reason(str, Enum):
    FILE_TIME = "file-time"
    ARCHIVE_EXTRACTED = "archive-extracted"
    FOLDER_TIME = "folder-time"


class Combine(str, Enum):
    AND = "and"
    OR = "or"


class AgeBasis(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"


class ConflictPolicy(str, Enum):
    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"


class Timestamped(Protocol):
    """Anything the time rules can be evaluated against."""
    created: datetime
    modified: datetime
    accessed: datetime


@dataclass(frozen=True)
class Item:
    path: Path
    name: str
    kind: ItemKind
    size: int
    created: datetime
    modified: datetime
    accessed: datetime
    hidden: bool = False

    @property
    def is_dir(self) -> bool:
        return self.kind is ItemKind.DIRECTORY


@dataclass(frozen=True)
class ActivitySnapshot:
    accessed: datetime
    modified: datetime


@dataclass(frozen=True)
class FolderActivityView:
    """A folder's own creation time paired with its (possibly deep) activity."""
    created: datetime
    modified: datetime
    accessed: datetime

    @classmethod
    def for_folder(cls, folder: Item, activity: ActivitySnapshot) -> "FolderActivityView":
        return cls(created=folder.created, modified=activity.modified, accessed=activity.accessed)


@dataclass(frozen=True)
class TimeRuleSpec:
    untouched: Optional[timedelta] = None
    age: Optional[timedelta] = None
    combine: Combine = Combine.AND
    age_basis: AgeBasis = AgeBasis.CREATED


@dataclass(frozen=True)
class MoveCandidate:
    item: Item
    reason: Reason


@dataclass(frozen=True)
class MoveResult:
    src: Path
    dst: Optional[Path]
    success: bool
    performed: bool  # False if dry-run or skipped
    reason: str = ""  # e.g. "dry-run", "conflict: skipped", error text


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RunSummary:
    dry_run: bool
    candidates: int = 0
    moved: int = 0
    failed: int = 0
    skipped: int = 0
    removed_dirs: int = 0
    cap_reached: bool = False
    aborted: bool = False

    @property
    def operations(self) -> int:
        return self.moved + self.failed
