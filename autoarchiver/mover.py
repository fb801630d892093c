from pathlib import Path
from datetime import datetime
from typing import Callable, List, Optional, Sequence
import os
import shutil
import subprocess
import sys
import tempfile
import time

from .errors import MoveError
from .models import ConflictPolicy, Item, MoveResult
from .utils import ensure_dir

# robocopy exit codes below 8 mean "copied / nothing to do / extra files", 8+ are failures
ROBOCOPY_SUCCESS = range(0, 8)
RSYNC_SUCCESS = range(0, 1)


class DestinationResolver:
    """Maps items into <dest>/<YYYY>/<MM>/ buckets and applies the conflict policy."""
    def __init__(
        self,
        dest_root: Path,
        policy: ConflictPolicy = ConflictPolicy.RENAME,
        dry_run: bool = True,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.dest_root = dest_root
        self.policy = policy
        self.dry_run = dry_run
        self.now = now

    def bucket(self) -> Path:
        today = self.now()
        return self.dest_root / f"{today.year:04d}" / f"{today.month:02d}"

    def resolve_destination(self, item: Item) -> Path:
        bucket = self.bucket()
        if not self.dry_run:
            ensure_dir(bucket)
        return bucket / item.name

    def resolve_conflict(self, target: Path) -> Optional[Path]:
        if not os.path.lexists(target):
            return target
        if self.policy is ConflictPolicy.SKIP:
            return None
        if self.policy is ConflictPolicy.OVERWRITE:
            return target
        return self.timestamped_name(target)

    def timestamped_name(self, target: Path) -> Path:
        """<stem>__<yyyyMMdd_HHmmss><ext>, plus a counter if even that name is taken."""
        stem, ext = _split_name(target)
        stamp = self.now().strftime("%Y%m%d_%H%M%S")
        candidate = target.parent / f"{stem}__{stamp}{ext}"
        i = 1
        while os.path.lexists(candidate):
            candidate = target.parent / f"{stem}__{stamp}_{i}{ext}"
            i += 1
        return candidate


def _split_name(path: Path):
    # Directories keep dots in their name, files lose only the last suffix
    if path.is_dir():
        return path.name, ""
    return path.stem, path.suffix


class ResilientCopier:
    """Copy-verify-delete move of a single large file through an external copy helper.

    robocopy (restartable mode) on Windows, rsync (--partial) elsewhere. The helper
    is retried a bounded number of times with a fixed wait between attempts.
    """
    def __init__(
        self,
        attempts: int = 3,
        wait_seconds: float = 5,
        runner: Callable = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
        platform: str = sys.platform,
    ):
        self.attempts = max(1, attempts)
        self.wait_seconds = wait_seconds
        self.runner = runner
        self.sleep = sleep
        self.windows = platform.startswith("win")

    @property
    def success_codes(self) -> Sequence[int]:
        return ROBOCOPY_SUCCESS if self.windows else RSYNC_SUCCESS

    def command(self, src: Path, dst: Path) -> List[str]:
        if self.windows:
            # robocopy copies by name into a directory; dst is a staging directory here
            return ["robocopy", str(src.parent), str(dst), src.name, "/Z", "/R:1", "/W:1", "/NP", "/NJH", "/NJS"]
        return ["rsync", "--partial", "--times", str(src), str(dst)]

    def move(self, src: Path, dst: Path) -> None:
        expected = src.stat().st_size
        staging: Optional[Path] = None
        if self.windows:
            staging = Path(tempfile.mkdtemp(prefix=".autoarchiver-", dir=dst.parent))
            copy_to, copied = staging, staging / src.name
        else:
            copy_to, copied = dst, dst
        existed = os.path.lexists(dst)

        try:
            self._run_with_retries(self.command(src, copy_to))
            if not copied.exists() or copied.stat().st_size != expected:
                raise MoveError(f"Copy verification failed for {src}")
            if copied != dst:
                os.replace(copied, dst)
        except (OSError, MoveError):
            # A partial or truncated copy must not sit under the archive name
            if staging is None and not existed and os.path.lexists(dst):
                dst.unlink()
            raise
        finally:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)
        src.unlink()

    def _run_with_retries(self, cmd: List[str]) -> None:
        last = ""
        for attempt in range(1, self.attempts + 1):
            try:
                proc = self.runner(cmd, capture_output=True, text=True)
            except OSError as exc:
                # helper missing entirely, retrying won't help
                raise MoveError(f"Cannot run {cmd[0]}: {exc}") from exc
            if proc.returncode in self.success_codes:
                return
            last = f"{cmd[0]} exited with code {proc.returncode}"
            if proc.stderr:
                last += f": {proc.stderr.strip()}"
            if attempt < self.attempts:
                self.sleep(self.wait_seconds)
        raise MoveError(f"{last} (after {self.attempts} attempts)")


class SafeMover:
    """Moves (or, in dry-run, only reports) one item at a time. Never raises."""
    def __init__(
        self,
        dry_run: bool = True,
        resilient: bool = False,
        large_file_bytes: int = 0,
        copier: Optional[ResilientCopier] = None,
        logger=None,
    ):
        self.dry_run = dry_run
        self.resilient = resilient
        self.large_file_bytes = large_file_bytes
        self.copier = copier or ResilientCopier()
        self.logger = logger

    def move(self, item: Item, target: Path, reason: str = "") -> MoveResult:
        if self.dry_run:
            self._log("INFO", "Would move", item.path, target, reason)
            return MoveResult(item.path, target, success=True, performed=False, reason="dry-run")

        aside: Optional[Path] = None
        try:
            ensure_dir(target.parent)
            if os.path.lexists(target):
                # Only reached under the overwrite policy; the old copy goes only once the new one is in
                aside = _set_aside(target)
            if item.is_dir:
                shutil.move(str(item.path), str(target))
            elif self.resilient and item.size >= self.large_file_bytes:
                self.copier.move(item.path, target)
            else:
                shutil.move(str(item.path), str(target))
        except (OSError, shutil.Error, MoveError) as exc:
            self._log("ERROR", "Move failed", item.path, target, reason, error=str(exc))
            if aside is not None:
                self._restore(aside, target)
            return MoveResult(item.path, target, success=False, performed=False, reason=str(exc))

        if aside is not None:
            shutil.rmtree(aside.parent, ignore_errors=True)

        self._log("INFO", "Moved", item.path, target, reason)
        return MoveResult(item.path, target, success=True, performed=True, reason=reason)

    def _restore(self, aside: Path, target: Path) -> None:
        try:
            if os.path.lexists(target):
                _remove(target)
            os.replace(aside, target)
            aside.parent.rmdir()
        except OSError as exc:
            if self.logger is not None:
                self.logger.error("Could not restore overwritten item", source=aside, destination=target, error=str(exc))

    def _log(self, level: str, message: str, src: Path, dst: Path, reason: str, **extra) -> None:
        if self.logger is not None:
            self.logger.log(level, message, source=src, destination=dst, reason=reason or None, **extra)


def _set_aside(target: Path) -> Path:
    holder = Path(tempfile.mkdtemp(prefix=".autoarchiver-old-", dir=target.parent))
    aside = holder / target.name
    os.replace(target, aside)
    return aside


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
