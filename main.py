import argparse
import sys
from pathlib import Path
from typing import List, Optional

from autoarchiver.config import load_config
from autoarchiver.default_rules import DEFAULT_CONFIG_NAME
from autoarchiver.errors import AutoArchiverError, ConfigError
from autoarchiver.logger import RunLogger
from autoarchiver.runner import Archiver


def ask_yes_no(prompt: str) -> bool:
    # No terminal to ask (scheduled task, piped stdin): refuse
    if not sys.stdin or not sys.stdin.isatty():
        return False
    try:
        return input(prompt + " [y/N]: ").strip().lower() == "y"
    except EOFError:
        return False


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="autoarchiver",
        description="Move stale top-level files and folders into a <dest>/<year>/<month> archive tree.",
    )
    p.add_argument("--config", type=Path, help=f"JSON config file (default: ./{DEFAULT_CONFIG_NAME} if present)")
    p.add_argument("--source", help="Folder to clean up (top level only)")
    p.add_argument("--dest", dest="destination", help="Archive root")
    p.add_argument("--log-dir", dest="log_dirs", action="append", help="Log directory; repeat for a second (e.g. network) copy")
    p.add_argument("--include", action="append", help="Glob of names to consider (repeatable)")
    p.add_argument("--exclude", action="append", help="Glob of names to leave alone (repeatable)")
    p.add_argument("--file-untouched-days", type=float)
    p.add_argument("--file-age-days", type=float)
    p.add_argument("--file-combine", choices=["and", "or"])
    p.add_argument("--folder-untouched-days", type=float)
    p.add_argument("--folder-age-days", type=float)
    p.add_argument("--folder-combine", choices=["and", "or"])
    p.add_argument("--age-basis", choices=["created", "modified"],
                   help="Timestamp the age rules look at. Where the OS keeps no creation time (most Linux "
                        "filesystems) 'created' falls back to the earlier of inode change and last write")
    p.add_argument("--shallow", dest="deep_folder_scan", action="store_false", default=None,
                   help="Judge folders by their own timestamps only")
    p.add_argument("--include-hidden", dest="skip_hidden", action="store_false", default=None)
    p.add_argument("--archive-grace-minutes", type=float)
    p.add_argument("--on-conflict", dest="conflict_policy", choices=["skip", "overwrite", "rename"])
    p.add_argument("--resilient-copy", action="store_true", default=None,
                   help="Use robocopy/rsync for files above --large-file-mb")
    p.add_argument("--large-file-mb", type=float)
    p.add_argument("--max-operations", type=int)
    p.add_argument("--min-free-mb", type=float)
    p.add_argument("--keep-empty-dirs", dest="remove_empty_dirs", action="store_false", default=None)
    p.add_argument("--dry-run", action="store_true", default=None, help="Only report what would happen")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation (for scheduled runs)")
    p.add_argument("--verbose", action="store_true", default=None)
    return p


def overrides_from_args(args: argparse.Namespace) -> dict:
    overrides = {
        k: getattr(args, k)
        for k in (
            "source", "destination", "log_dirs", "include", "exclude", "deep_folder_scan", "skip_hidden",
            "archive_grace_minutes", "conflict_policy", "resilient_copy", "large_file_mb",
            "max_operations", "min_free_mb", "remove_empty_dirs", "dry_run", "verbose",
        )
    }
    for kind in ("file", "folder"):
        rule = {
            "untouched_days": getattr(args, f"{kind}_untouched_days"),
            "age_days": getattr(args, f"{kind}_age_days"),
            "combine": getattr(args, f"{kind}_combine"),
            "age_basis": args.age_basis,
        }
        rule = {k: v for k, v in rule.items() if v is not None}
        if rule:
            overrides[f"{kind}s"] = rule
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG_NAME).exists():
        config_path = Path(DEFAULT_CONFIG_NAME)

    try:
        config = load_config(config_path, overrides_from_args(args))
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    logger = RunLogger(config.log_dirs, verbose=config.verbose)
    confirm = None
    if not args.yes:
        confirm = lambda n: ask_yes_no(f"Archive or remove {n} item(s) (destination {config.destination})?")

    try:
        archiver = Archiver(config, logger=logger, confirm=confirm)
        summary = archiver.run()
    except AutoArchiverError:
        # already logged by the pre-flight check
        return 1

    if summary.aborted:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
