from pathlib import Path
import shutil
from .errors import InvalidPathError, InsufficientSpaceError

def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def free_space_mb(path: Path) -> float:
    total, used, free = shutil.disk_usage(path)
    return free / (1024 * 1024)


def validate_source_dest(src: Path, dest: Path) -> None:
    if not src.exists() or not src.is_dir():
        raise InvalidPathError(f"Source folder invalid: {src}")
    if not dest.exists() or not dest.is_dir():
        raise InvalidPathError(f"Destination folder invalid: {dest}")
    # Archiving into the source would make the buckets candidates themselves
    try:
        dest.resolve().relative_to(src.resolve())
    except ValueError:
        return
    raise InvalidPathError("Destination cannot be inside source folder.")


def check_free_space(dest: Path, required_mb: float) -> None:
    free = free_space_mb(dest)
    if free < required_mb:
        raise InsufficientSpaceError(
            f"Not enough free space on {dest}: {free:.0f} MB available, {required_mb:.0f} MB required."
        )
