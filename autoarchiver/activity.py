import os
from pathlib import Path
from typing import List

from .models import ActivitySnapshot, Item
from .scanner import to_datetime


class ActivityInspector:
    """Reports the latest access/write activity of an item.

    In deep mode a folder's whole subtree is walked and the newest timestamps of
    the folder and every descendant win. Entries that cannot be read are
    skipped; the walk never raises, it only under-reports.
    """

    def __init__(self, deep: bool = True, logger=None):
        self.deep = deep
        self.logger = logger
        self.errors = 0

    def latest_activity(self, item: Item) -> ActivitySnapshot:
        accessed, modified = item.accessed, item.modified
        if not (self.deep and item.is_dir):
            return ActivitySnapshot(accessed=accessed, modified=modified)

        newest_atime = newest_mtime = None
        stack: List[Path] = [item.path]
        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    for entry in it:
                        try:
                            st = entry.stat(follow_symlinks=False)
                            if entry.is_dir(follow_symlinks=False):
                                stack.append(Path(entry.path))
                        except OSError as exc:
                            self._swallow(entry.path, exc)
                            continue
                        if newest_atime is None or st.st_atime > newest_atime:
                            newest_atime = st.st_atime
                        if newest_mtime is None or st.st_mtime > newest_mtime:
                            newest_mtime = st.st_mtime
            except OSError as exc:
                self._swallow(current, exc)

        # The folder's own timestamps are the floor
        if newest_atime is not None:
            accessed = max(accessed, to_datetime(newest_atime))
        if newest_mtime is not None:
            modified = max(modified, to_datetime(newest_mtime))
        return ActivitySnapshot(accessed=accessed, modified=modified)

    def _swallow(self, path, exc: OSError) -> None:
        self.errors += 1
        if self.logger is not None:
            self.logger.debug("Activity scan skipped an entry", source=str(path), error=str(exc))
