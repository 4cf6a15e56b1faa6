"""
World archive creation.

Archives are gzip'd tarballs named after the UTC instant they were taken and
written next to the world directory, e.g. ``2026-10-17T21-04-55Z.tar.gz``.
A second archive taken in the same second is ``2026-10-17T21-04-55Z-1.tar.gz``.
"""

import logging
import tarfile
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%SZ"


def backup_timestamp(now: datetime = None) -> str:
    """Filesystem-safe ISO-8601-like UTC timestamp."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(TIMESTAMP_FORMAT)


def _archive_sort_key(name: str):
    """(timestamp, sequence) for an archive name, or None if it is not one."""
    stem = name[: -len(ARCHIVE_SUFFIX)]
    stamp, sep, sequence = stem.rpartition("Z-")
    if sep and sequence.isdigit():
        stamp += "Z"
    else:
        stamp, sequence = stem, "0"
    try:
        taken_at = datetime.strptime(stamp, TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return taken_at, int(sequence)


def create_world_archive(world_dir: Path, now: datetime = None) -> Path:
    """Create a compressed archive of the world directory.

    Returns the archive path. The server must not be writing to the world
    while this runs.
    """
    world_dir = Path(world_dir)
    if not world_dir.is_dir():
        raise FileNotFoundError(f"world directory not found: {world_dir}")

    stamp = backup_timestamp(now)
    sequence = 0
    while True:
        # Backups taken within the same second get a -1, -2, ... suffix
        name = stamp if sequence == 0 else f"{stamp}-{sequence}"
        archive_path = world_dir.parent / f"{name}{ARCHIVE_SUFFIX}"
        try:
            tar = tarfile.open(archive_path, "x:gz")
        except FileExistsError:
            sequence += 1
            continue
        break

    try:
        with tar:
            tar.add(world_dir, arcname=world_dir.name)
    except BaseException:
        archive_path.unlink(missing_ok=True)
        raise

    logger.info(f"Created world archive at {archive_path}")
    return archive_path


def prune_old_archives(world_dir: Path, keep: int) -> list[Path]:
    """Remove old archives next to the world directory, keeping the newest."""
    parent = Path(world_dir).parent
    archives = sorted(
        (
            p
            for p in parent.glob(f"*{ARCHIVE_SUFFIX}")
            if p.is_file() and _archive_sort_key(p.name) is not None
        ),
        key=lambda p: _archive_sort_key(p.name),
        reverse=True,
    )
    removed = []
    for old_archive in archives[keep:]:
        try:
            old_archive.unlink()
            removed.append(old_archive)
            logger.debug(f"Removed old archive: {old_archive}")
        except OSError as e:
            logger.warning(f"Failed to remove old archive {old_archive}: {e}")
    return removed
