from datetime import datetime
from typing import Callable, List, Optional

from .activity import ActivityInspector
from .classifier import ArchiveSiblingDetector, CandidateSelector, TimeRuleEvaluator
from .config import ArchiverConfig
from .errors import AutoArchiverError, InvalidPathError
from .logger import RunLogger
from .models import MoveCandidate, RunSummary
from .mover import DestinationResolver, ResilientCopier, SafeMover
from .patterns import PatternMatcher
from .reaper import EmptyDirReaper
from .scanner import FolderScanner, is_locked
from .utils import check_free_space, validate_source_dest


class Archiver:
    """One archiving pass over the source folder.

    Every component gets its slice of the config at construction time; nothing
    reads global state.
    """

    def __init__(
        self,
        config: ArchiverConfig,
        logger: Optional[RunLogger] = None,
        confirm: Optional[Callable[[int], bool]] = None,
        now: Callable[[], datetime] = datetime.now,
        copier: Optional[ResilientCopier] = None,
        lock_probe: Callable = is_locked,
    ):
        self.config = config
        self.logger = logger or RunLogger(config.log_dirs, verbose=config.verbose)
        self.confirm = confirm
        self.now = now

        self.matcher = PatternMatcher(config.include, config.exclude)
        evaluator = TimeRuleEvaluator(now=now)
        self.selector = CandidateSelector(
            matcher=self.matcher,
            file_rule=config.file_rule,
            folder_rule=config.folder_rule,
            evaluator=evaluator,
            archive_detector=ArchiveSiblingDetector(config.archive_patterns, config.archive_grace_minutes, now=now),
            inspector=ActivityInspector(deep=config.deep_folder_scan, logger=self.logger),
            skip_hidden=config.skip_hidden,
            lock_probe=lock_probe,
            logger=self.logger,
        )
        self.resolver = DestinationResolver(
            config.destination, policy=config.conflict_policy, dry_run=config.dry_run, now=now,
        )
        self.mover = SafeMover(
            dry_run=config.dry_run,
            resilient=config.resilient_copy,
            large_file_bytes=config.large_file_bytes,
            copier=copier or ResilientCopier(config.copy_attempts, config.copy_wait_seconds),
            logger=self.logger,
        )
        self.reaper = EmptyDirReaper(
            config.source, eligible=self.selector.eligible, dry_run=config.dry_run, logger=self.logger,
        )

    def preflight(self) -> None:
        """Fatal checks; raises before anything is selected."""
        try:
            if self.config.source is None or self.config.destination is None:
                raise InvalidPathError("Both a source and a destination folder are required.")
            validate_source_dest(self.config.source, self.config.destination)
            if not self.config.dry_run and self.config.min_free_mb > 0:
                check_free_space(self.config.destination, self.config.min_free_mb)
        except AutoArchiverError as exc:
            self.logger.error("Pre-flight check failed", error=str(exc))
            raise

    def select(self) -> List[MoveCandidate]:
        files, folders = FolderScanner(self.config.source).scan()
        return self.selector.select(files, folders)

    def run(self) -> RunSummary:
        cfg = self.config
        summary = RunSummary(dry_run=cfg.dry_run)
        self.logger.info(
            "Run started", source=cfg.source, destination=cfg.destination, dry_run=cfg.dry_run,
        )
        self.preflight()

        candidates = self.select()
        summary.candidates = len(candidates)
        self.logger.info(f"{len(candidates)} item(s) selected")

        if not cfg.dry_run and self.confirm is not None:
            # Moves never empty another top-level folder, so the reap set is known up front
            pending = len(candidates)
            if cfg.remove_empty_dirs:
                pending += len(self.reaper.find_empty())
            if pending and not self.confirm(pending):
                self.logger.warn("Aborted at confirmation, nothing was moved or removed")
                summary.aborted = True
                return summary

        for index, cand in enumerate(candidates):
            if summary.operations >= cfg.max_operations:
                summary.cap_reached = True
                self.logger.warn(
                    f"Reached max operations per run ({cfg.max_operations}); {len(candidates) - index} candidate(s) left for next run",
                )
                break

            destination = self.resolver.resolve_destination(cand.item)
            target = self.resolver.resolve_conflict(destination)
            if target is None:
                summary.skipped += 1
                self.logger.info(
                    "Skipped, destination exists",
                    source=cand.item.path, destination=destination, reason=cand.reason,
                )
                continue

            result = self.mover.move(cand.item, target, reason=cand.reason.value)
            if result.success:
                summary.moved += 1
            else:
                summary.failed += 1

        if cfg.remove_empty_dirs:
            summary.removed_dirs = len(self.reaper.reap())

        self.logger.info(
            f"Done. {'Would move' if cfg.dry_run else 'Moved'} {summary.moved}, failed {summary.failed}, "
            f"skipped {summary.skipped}, empty dirs {summary.removed_dirs}.",
            operations=summary.operations,
            dry_run=cfg.dry_run,
        )
        return summary
