import os
from pathlib import Path
from typing import Callable, List

from .models import Item
from .scanner import snapshot


class EmptyDirReaper:
    """Removes empty top-level directories of the source folder after a run.

    Only direct children are looked at. A top-level folder that merely contains
    empty subfolders is not empty and is left alone, as are the subfolders.
    """

    def __init__(self, root: Path, eligible: Callable[[Item], bool], dry_run: bool = True, logger=None):
        self.root = root
        self.eligible = eligible
        self.dry_run = dry_run
        self.logger = logger

    def find_empty(self) -> List[Item]:
        found: List[Item] = []
        for p in self.root.iterdir():
            if p.is_symlink() or not p.is_dir():
                continue
            try:
                item = snapshot(p)
                with os.scandir(p) as it:
                    empty = next(it, None) is None
            except OSError:
                continue
            if empty and self.eligible(item):
                found.append(item)
        return found

    def reap(self) -> List[Path]:
        removed: List[Path] = []
        for item in self.find_empty():
            if self.dry_run:
                self._log("INFO", "Would remove empty directory", item.path)
                removed.append(item.path)
                continue
            try:
                os.rmdir(item.path)
            except OSError as exc:
                self._log("ERROR", "Could not remove empty directory", item.path, error=str(exc))
                continue
            self._log("INFO", "Removed empty directory", item.path)
            removed.append(item.path)
        return removed

    def _log(self, level: str, message: str, path: Path, **extra) -> None:
        if self.logger is not None:
            self.logger.log(level, message, source=path, **extra)
