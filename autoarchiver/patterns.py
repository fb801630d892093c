import fnmatch
from typing import Iterable, List, Sequence


def _matches_any(name: str, patterns: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(fnmatch.fnmatchcase(lowered, p.lower()) for p in patterns)


class PatternMatcher:
    """Case-insensitive include/exclude glob filter on item names."""
    def __init__(self, includes: Sequence[str], excludes: Sequence[str] = ()):
        self.includes: List[str] = list(includes)
        self.excludes: List[str] = list(excludes)

    def matches(self, name: str) -> bool:
        return matches(name, self.includes, self.excludes)


def matches(name: str, includes: Sequence[str], excludes: Sequence[str]) -> bool:
    # No include patterns means nothing is eligible
    if not _matches_any(name, includes):
        return False
    if _matches_any(name, excludes):
        return False
    return True
