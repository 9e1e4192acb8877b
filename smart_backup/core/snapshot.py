"""Snapshot creation: timestamped, filtered copies of the source tree."""

import logging
import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from .errors import CopyError, SourceNotFound
from .exclusion import should_include
from .models import BackupConfiguration

SNAPSHOT_PREFIX = "Backup_"
SNAPSHOT_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"
SNAPSHOT_NAME_PATTERN = re.compile(r"^Backup_\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}$")

logger = logging.getLogger(__name__)


def snapshot_name(timestamp: datetime) -> str:
    """Return the folder name for a snapshot taken at ``timestamp``."""
    return f"{SNAPSHOT_PREFIX}{timestamp.strftime(SNAPSHOT_TIME_FORMAT)}"


def is_snapshot_name(name: str) -> bool:
    return bool(SNAPSHOT_NAME_PATTERN.match(name))


def parse_snapshot_name(name: str) -> Optional[datetime]:
    """Parse the creation time out of a snapshot folder name.

    Returns:
        The timestamp, or None if the name is not a snapshot name.
    """
    if not is_snapshot_name(name):
        return None
    try:
        return datetime.strptime(name[len(SNAPSHOT_PREFIX):], SNAPSHOT_TIME_FORMAT)
    except ValueError:
        return None


def create_snapshot(config: BackupConfiguration, now: Optional[datetime] = None) -> Path:
    """Copy the source tree into a new timestamped folder.

    Args:
        config: Configuration for this cycle.
        now: Timestamp to name the snapshot after. Defaults to local time.

    Returns:
        Path of the created snapshot folder.

    Raises:
        SourceNotFound: If the source directory does not exist.
        CopyError: If any file or directory could not be copied. The
            partially written snapshot is left in place.
    """
    source = Path(config.source)
    if not source.is_dir():
        raise SourceNotFound(f"Source path does not exist: {source}")

    timestamp = (now or datetime.now()).replace(microsecond=0)
    snapshot_path = Path(config.destination) / snapshot_name(timestamp)

    logger.info(f"Creating snapshot {snapshot_path} from {source}")
    try:
        snapshot_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CopyError(f"Could not create snapshot folder {snapshot_path}: {e}",
                        source_path=str(source), cause=e) from e

    copied = _copy_tree(str(source), str(snapshot_path), "", config.excludes)
    logger.info(f"Snapshot {snapshot_path.name} complete: {copied} files copied")
    return snapshot_path


def _copy_tree(source_root: str, destination_root: str, relative_dir: str,
               excludes: Iterable[str]) -> int:
    """Recursively copy included entries of one directory.

    Returns:
        Number of files copied.
    """
    copied = 0
    current = os.path.join(source_root, relative_dir) if relative_dir else source_root

    try:
        entries = sorted(os.scandir(current), key=lambda entry: entry.name)
    except OSError as e:
        raise CopyError(f"Could not read directory {current}: {e}",
                        source_path=current, cause=e) from e

    for entry in entries:
        relative_path = os.path.join(relative_dir, entry.name) if relative_dir else entry.name
        if not should_include(relative_path, excludes):
            logger.debug(f"Excluded {relative_path}")
            continue

        target = os.path.join(destination_root, relative_path)
        try:
            if entry.is_symlink():
                if os.path.lexists(target):
                    os.remove(target)
                os.symlink(os.readlink(entry.path), target)
                copied += 1
            elif entry.is_dir():
                os.makedirs(target, exist_ok=True)
            else:
                shutil.copy2(entry.path, target)
                copied += 1
        except OSError as e:
            raise CopyError(f"Failed to copy {entry.path}: {e}",
                            source_path=entry.path, cause=e) from e

        if entry.is_dir(follow_symlinks=False):
            copied += _copy_tree(source_root, destination_root, relative_path, excludes)

    return copied
