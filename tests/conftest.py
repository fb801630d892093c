import os
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from autoarchiver.logger import RunLogger
from autoarchiver.models import Item, ItemKind

# Real "now" captured once, so files stamped with os.utime line up with the
# injected clock (creation time cannot be faked on most filesystems).
NOW = datetime.now().replace(microsecond=0)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def stamp(path: Path, accessed: datetime, modified: datetime) -> Path:
    os.utime(path, (accessed.timestamp(), modified.timestamp()))
    return path


def make_file(root: Path, name: str, accessed_days: float = 0, modified_days: float = 0, content: str = "x") -> Path:
    p = root / name
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    return stamp(p, days_ago(accessed_days), days_ago(modified_days))


def make_item(
    name: str = "report.pdf",
    kind: ItemKind = ItemKind.FILE,
    created: datetime = NOW,
    modified: datetime = NOW,
    accessed: datetime = NOW,
    hidden: bool = False,
    root: Path = Path("/src"),
    size: int = 10,
) -> Item:
    return Item(
        path=root / name, name=name, kind=kind, size=size,
        created=created, modified=modified, accessed=accessed, hidden=hidden,
    )


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def logger():
    return RunLogger(echo=False, verbose=True, clock=lambda: NOW)


@pytest.fixture
def src(tmp_path):
    p = tmp_path / "inbox"
    p.mkdir()
    return p


@pytest.fixture
def dest(tmp_path):
    p = tmp_path / "archive"
    p.mkdir()
    return p
