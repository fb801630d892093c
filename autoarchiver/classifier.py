import fnmatch
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Set

from .activity import ActivityInspector
from .models import (
    AgeBasis, Combine, FolderActivityView, Item, MoveCandidate, Reason, TimeRuleSpec, Timestamped,
)
from .patterns import PatternMatcher
from .scanner import is_locked

# Access times older than this were never populated by the filesystem
ACCESS_SENTINEL_YEAR = 1900


class TimeRuleEvaluator:
    """Combines the "untouched" (last access) and "age" thresholds of a TimeRuleSpec."""
    def __init__(self, now: Callable[[], datetime] = datetime.now):
        self.now = now

    def selected(self, item: Timestamped, spec: TimeRuleSpec) -> bool:
        now = self.now()
        untouched_ok: Optional[bool] = None
        age_ok: Optional[bool] = None

        if spec.untouched is not None:
            accessed = item.accessed
            if accessed.year < ACCESS_SENTINEL_YEAR:
                accessed = item.modified
            untouched_ok = (now - accessed) >= spec.untouched

        if spec.age is not None:
            basis = item.created if spec.age_basis is AgeBasis.CREATED else item.modified
            age_ok = (now - basis) >= spec.age

        if untouched_ok is None and age_ok is None:
            return False
        if untouched_ok is None:
            return bool(age_ok)
        if age_ok is None:
            return untouched_ok
        if spec.combine is Combine.OR:
            return untouched_ok or age_ok
        return untouched_ok and age_ok


def build_sibling_index(folders: Iterable[Item]) -> Set[str]:
    return {f.name.lower() for f in folders}


class ArchiveSiblingDetector:
    """Flags archives that already have an extracted folder of the same name next to them."""
    def __init__(
        self,
        patterns: Iterable[str],
        grace_minutes: float,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.patterns = [p.lower() for p in patterns]
        self.grace = timedelta(minutes=grace_minutes)
        self.now = now

    def archive_stem(self, name: str) -> Optional[str]:
        """Name with the longest matching archive extension stripped, or None."""
        lowered = name.lower()
        best: Optional[str] = None
        for pattern in self.patterns:
            if not fnmatch.fnmatchcase(lowered, pattern):
                continue
            ext = pattern.lstrip("*")
            if not ext.startswith(".") or any(c in ext for c in "*?["):
                # Not a plain extension pattern, fall back to the last suffix
                dot = lowered.rfind(".")
                ext = lowered[dot:] if dot > 0 else ""
            if not ext or not lowered.endswith(ext) or len(ext) >= len(lowered):
                continue
            stem = lowered[: -len(ext)]
            if best is None or len(stem) < len(best):
                best = stem
        return best

    def is_extracted_archive(self, item: Item, sibling_index: Set[str]) -> bool:
        stem = self.archive_stem(item.name)
        if stem is None or stem not in sibling_index:
            return False
        # Fresh archives may still be mid-extraction
        return (self.now() - item.modified) >= self.grace


class CandidateSelector:
    """Builds the ordered move candidate list: files first, then folders."""
    def __init__(
        self,
        matcher: PatternMatcher,
        file_rule: TimeRuleSpec,
        folder_rule: TimeRuleSpec,
        evaluator: TimeRuleEvaluator,
        archive_detector: Optional[ArchiveSiblingDetector],
        inspector: ActivityInspector,
        skip_hidden: bool = True,
        lock_probe: Callable = is_locked,
        logger=None,
    ):
        self.matcher = matcher
        self.file_rule = file_rule
        self.folder_rule = folder_rule
        self.evaluator = evaluator
        self.archive_detector = archive_detector
        self.inspector = inspector
        self.skip_hidden = skip_hidden
        self.lock_probe = lock_probe
        self.logger = logger

    def eligible(self, item: Item) -> bool:
        if self.skip_hidden and item.hidden:
            return False
        return self.matcher.matches(item.name)

    def select(self, files: List[Item], folders: List[Item]) -> List[MoveCandidate]:
        candidates: List[MoveCandidate] = []
        sibling_index = build_sibling_index(folders)

        for f in files:
            if not self.eligible(f):
                continue
            reason = self._file_reason(f, sibling_index)
            if reason is None:
                continue
            if self.lock_probe(f.path):
                self._debug("Skipping file in use", f)
                continue
            candidates.append(MoveCandidate(f, reason))

        for d in folders:
            if not self.eligible(d):
                continue
            activity = self.inspector.latest_activity(d)
            view = FolderActivityView.for_folder(d, activity)
            if self.evaluator.selected(view, self.folder_rule):
                candidates.append(MoveCandidate(d, Reason.FOLDER_TIME))

        return candidates

    def _file_reason(self, f: Item, sibling_index: Set[str]) -> Optional[Reason]:
        # First match wins
        if self.evaluator.selected(f, self.file_rule):
            return Reason.FILE_TIME
        if self.archive_detector and self.archive_detector.is_extracted_archive(f, sibling_index):
            return Reason.ARCHIVE_EXTRACTED
        return None

    def _debug(self, message: str, item: Item) -> None:
        if self.logger is not None:
            self.logger.debug(message, source=item.path)
