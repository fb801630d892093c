"""Time rules, archive-sibling detection and candidate selection."""

from datetime import datetime, timedelta

import pytest

from autoarchiver.activity import ActivityInspector
from autoarchiver.classifier import (
    ArchiveSiblingDetector, CandidateSelector, TimeRuleEvaluator, build_sibling_index,
)
from autoarchiver.models import (
    AgeBasis, Combine, FolderActivityView, ItemKind, MoveCandidate, Reason, TimeRuleSpec,
)
from autoarchiver.patterns import PatternMatcher
from autoarchiver.scanner import FolderScanner, UNSET_TIME

from conftest import NOW, days_ago, make_file, make_item, stamp

ARCHIVES = ["*.zip", "*.7z", "*.tar", "*.tar.gz", "*.tgz"]


def rule(untouched=None, age=None, combine=Combine.AND, basis=AgeBasis.CREATED):
    return TimeRuleSpec(
        untouched=timedelta(days=untouched) if untouched is not None else None,
        age=timedelta(days=age) if age is not None else None,
        combine=combine,
        age_basis=basis,
    )


class TestTimeRuleEvaluator:

    @pytest.fixture
    def evaluator(self, clock):
        return TimeRuleEvaluator(now=clock)

    @pytest.mark.parametrize("combine", [Combine.AND, Combine.OR])
    def test_old_and_untouched_item_is_selected(self, evaluator, combine):
        item = make_item(accessed=days_ago(10), created=days_ago(40))
        assert evaluator.selected(item, rule(untouched=7, age=30, combine=combine))

    @pytest.mark.parametrize("combine", [Combine.AND, Combine.OR])
    def test_fresh_item_is_never_selected(self, evaluator, combine):
        item = make_item(accessed=days_ago(1), created=days_ago(1))
        assert not evaluator.selected(item, rule(untouched=7, age=30, combine=combine))

    def test_and_needs_both_or_needs_one(self, evaluator):
        # old, but opened yesterday
        item = make_item(accessed=days_ago(1), created=days_ago(40))
        assert not evaluator.selected(item, rule(untouched=7, age=30, combine=Combine.AND))
        assert evaluator.selected(item, rule(untouched=7, age=30, combine=Combine.OR))

    def test_single_threshold_decides_alone(self, evaluator):
        item = make_item(accessed=days_ago(10), created=days_ago(2))
        assert evaluator.selected(item, rule(untouched=7))
        assert not evaluator.selected(item, rule(age=7))

    def test_no_thresholds_never_selects(self, evaluator):
        item = make_item(accessed=days_ago(1000), created=days_ago(1000))
        assert not evaluator.selected(item, TimeRuleSpec())

    def test_zero_thresholds_select_everything(self, evaluator):
        item = make_item(accessed=NOW, created=NOW, modified=NOW)
        assert evaluator.selected(item, rule(untouched=0, age=0))
        assert evaluator.selected(item, rule(untouched=0))
        assert evaluator.selected(item, rule(age=0))

    def test_exactly_on_threshold_counts(self, evaluator):
        item = make_item(accessed=days_ago(7))
        assert evaluator.selected(item, rule(untouched=7))

    def test_age_basis_switches_timestamp(self, evaluator):
        item = make_item(created=days_ago(2), modified=days_ago(60))
        assert not evaluator.selected(item, rule(age=30, basis=AgeBasis.CREATED))
        assert evaluator.selected(item, rule(age=30, basis=AgeBasis.MODIFIED))

    def test_unset_access_time_falls_back_to_write_time(self, evaluator):
        recent_write = make_item(accessed=UNSET_TIME, modified=days_ago(1))
        assert not evaluator.selected(recent_write, rule(untouched=7))
        old_write = make_item(accessed=datetime(1601, 1, 1), modified=days_ago(20))
        assert evaluator.selected(old_write, rule(untouched=7))

    def test_folder_view_uses_activity_not_own_access(self, evaluator):
        folder = make_item("proj", kind=ItemKind.DIRECTORY, accessed=days_ago(90), created=days_ago(90))
        view = FolderActivityView.for_folder(folder, ActivityInspector(deep=False).latest_activity(folder))
        assert evaluator.selected(view, rule(untouched=30))
        busy = FolderActivityView(created=folder.created, modified=days_ago(1), accessed=days_ago(1))
        assert not evaluator.selected(busy, rule(untouched=30))


class TestArchiveSiblingDetector:

    def detector(self, grace=30, now=lambda: NOW):
        return ArchiveSiblingDetector(ARCHIVES, grace_minutes=grace, now=now)

    def test_stem_strips_compound_extension(self):
        d = self.detector()
        assert d.archive_stem("Photos.tar.gz") == "photos"
        assert d.archive_stem("photos.TGZ") == "photos"
        assert d.archive_stem("v1.2.zip") == "v1.2"
        assert d.archive_stem("notes.txt") is None
        assert d.archive_stem(".zip") is None

    def test_archive_with_sibling_folder_past_grace(self):
        item = make_item("Project.zip", modified=NOW - timedelta(hours=2))
        assert self.detector().is_extracted_archive(item, {"project"})

    def test_no_sibling_folder(self):
        item = make_item("project.zip", modified=days_ago(10))
        assert not self.detector().is_extracted_archive(item, {"other"})

    def test_grace_period_protects_fresh_archives(self):
        item = make_item("project.zip", modified=NOW - timedelta(minutes=5))
        assert not self.detector(grace=30).is_extracted_archive(item, {"project"})
        assert self.detector(grace=0).is_extracted_archive(item, {"project"})

    def test_grace_period_elapses(self):
        item = make_item("project.zip", modified=NOW - timedelta(minutes=5))
        later = lambda: NOW + timedelta(minutes=26)
        assert self.detector(grace=30, now=later).is_extracted_archive(item, {"project"})

    def test_sibling_index_is_case_insensitive(self):
        folders = [make_item("Project", kind=ItemKind.DIRECTORY), make_item("data", kind=ItemKind.DIRECTORY)]
        assert build_sibling_index(folders) == {"project", "data"}


class TestCandidateSelector:

    def selector(self, clock, file_rule=None, folder_rule=None, includes=("*",), excludes=(),
                 lock_probe=lambda p: False, deep=True, grace=30):
        return CandidateSelector(
            matcher=PatternMatcher(includes, excludes),
            file_rule=file_rule or rule(untouched=14, age=30),
            folder_rule=folder_rule or rule(untouched=30),
            evaluator=TimeRuleEvaluator(now=clock),
            archive_detector=ArchiveSiblingDetector(ARCHIVES, grace, now=clock),
            inspector=ActivityInspector(deep=deep),
            lock_probe=lock_probe,
        )

    def test_report_is_selected_for_file_time(self, clock):
        report = make_item("report.pdf", created=days_ago(40), accessed=days_ago(20), modified=days_ago(40))
        got = self.selector(clock).select([report], [])
        assert got == [MoveCandidate(report, Reason.FILE_TIME)]

    def test_file_time_takes_precedence_over_archive(self, clock):
        archive = make_item("proj.zip", created=days_ago(60), accessed=days_ago(60), modified=days_ago(60))
        folder = make_item("proj", kind=ItemKind.DIRECTORY, accessed=NOW, modified=NOW, created=NOW)
        got = self.selector(clock, deep=False).select([archive], [folder])
        assert got == [MoveCandidate(archive, Reason.FILE_TIME)]

    def test_archive_selected_when_time_rule_fails(self, clock):
        archive = make_item("proj.tar.gz", created=days_ago(1), accessed=days_ago(1), modified=days_ago(1))
        folder = make_item("proj", kind=ItemKind.DIRECTORY)
        got = self.selector(clock, deep=False).select([archive], [folder])
        assert got == [MoveCandidate(archive, Reason.ARCHIVE_EXTRACTED)]

    def test_hidden_excluded_and_locked_files_are_skipped(self, clock):
        old = dict(created=days_ago(90), accessed=days_ago(90), modified=days_ago(90))
        hidden = make_item(".secret", hidden=True, **old)
        excluded = make_item("setup.tmp", **old)
        locked = make_item("open.docx", **old)
        free = make_item("free.docx", **old)
        sel = self.selector(clock, excludes=["*.tmp"], lock_probe=lambda p: p.name == "open.docx")
        got = sel.select([hidden, excluded, locked, free], [])
        assert [c.item.name for c in got] == ["free.docx"]

    def test_files_come_before_folders(self, clock):
        old = dict(created=days_ago(90), accessed=days_ago(90), modified=days_ago(90))
        folder = make_item("old-folder", kind=ItemKind.DIRECTORY, **old)
        f1 = make_item("a.txt", **old)
        f2 = make_item("b.txt", **old)
        got = self.selector(clock, deep=False).select([f1, f2], [folder])
        assert [(c.item.name, c.reason) for c in got] == [
            ("a.txt", Reason.FILE_TIME), ("b.txt", Reason.FILE_TIME), ("old-folder", Reason.FOLDER_TIME),
        ]

    def test_no_archive_check_for_folders(self, clock):
        folder = make_item("proj.zip", kind=ItemKind.DIRECTORY, modified=days_ago(5), accessed=days_ago(5))
        sibling = make_item("proj", kind=ItemKind.DIRECTORY, modified=days_ago(5), accessed=days_ago(5))
        assert self.selector(clock, deep=False).select([], [folder, sibling]) == []

    def test_deep_scan_keeps_recently_used_folder(self, src, clock):
        old_proj = src / "old-proj"
        make_file(old_proj, "notes.txt", accessed_days=100, modified_days=100)
        stamp(old_proj, days_ago(100), days_ago(100))

        live_proj = src / "live-proj"
        make_file(live_proj, "deep/inner/today.txt", accessed_days=0, modified_days=0)
        stamp(live_proj / "deep" / "inner", days_ago(100), days_ago(100))
        stamp(live_proj / "deep", days_ago(100), days_ago(100))
        stamp(live_proj, days_ago(100), days_ago(100))

        files, folders = FolderScanner(src).scan()
        deep = self.selector(clock, deep=True).select(files, folders)
        assert [c.item.name for c in deep] == ["old-proj"]

        files, folders = FolderScanner(src).scan()
        shallow = self.selector(clock, deep=False, folder_rule=rule(age=30, basis=AgeBasis.MODIFIED)).select(files, folders)
        assert sorted(c.item.name for c in shallow) == ["live-proj", "old-proj"]
