import os
import stat
import sys
from pathlib import Path
from datetime import datetime
from typing import List, Tuple
from .models import Item, ItemKind

# Windows reports a never-written FILETIME as 1601-01-01; anything outside the
# platform's representable range ends up here as well.
UNSET_TIME = datetime(1601, 1, 1)


def to_datetime(ts: float) -> datetime:
    try:
        return datetime.fromtimestamp(ts)
    except (OverflowError, OSError, ValueError):
        return UNSET_TIME


def is_hidden(path: Path, st: os.stat_result) -> bool:
    if path.name.startswith("."):
        return True
    attrs = getattr(st, "st_file_attributes", 0)
    return bool(attrs & stat.FILE_ATTRIBUTE_HIDDEN)


def creation_time(st: os.stat_result, platform: str = sys.platform) -> float:
    birth = getattr(st, "st_birthtime", None)
    if birth is not None:
        return birth
    if platform.startswith("win"):
        return st.st_ctime
    # st_ctime is the inode change time here (chmod, rename, utime reset it);
    # a file was never created after its last write
    return min(st.st_ctime, st.st_mtime)


def snapshot(path: Path) -> Item:
    """Take an immutable snapshot of a single filesystem entry."""
    st = path.stat()
    kind = ItemKind.DIRECTORY if stat.S_ISDIR(st.st_mode) else ItemKind.FILE
    created = creation_time(st)
    return Item(
        path=path,
        name=path.name,
        kind=kind,
        size=st.st_size if kind is ItemKind.FILE else 0,
        created=to_datetime(created),
        modified=to_datetime(st.st_mtime),
        accessed=to_datetime(st.st_atime),
        hidden=is_hidden(path, st),
    )


def is_locked(path: Path) -> bool:
    """Best-effort probe: True when the file cannot be opened for reading right now.

    Nothing is read; the handle is closed immediately.
    """
    try:
        with open(path, "rb"):
            pass
    except OSError:
        return True
    return False


class FolderScanner:
    """Scans the top level of a folder and returns file and folder snapshots."""

    def __init__(self, root: Path):
        self.root = root

    def scan(self) -> Tuple[List[Item], List[Item]]:
        files: List[Item] = []
        folders: List[Item] = []
        for p in self.root.iterdir():
            if p.is_symlink():
                continue
            try:
                item = snapshot(p)
            except OSError:
                # Vanished between listing and stat
                continue
            if item.is_dir:
                folders.append(item)
            elif p.is_file():
                files.append(item)
        return files, folders
