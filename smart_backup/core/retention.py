"""Retention of snapshot folders."""

import logging
import os
import shutil
from pathlib import Path
from typing import List

from .models import SnapshotInfo
from .snapshot import is_snapshot_name, parse_snapshot_name

logger = logging.getLogger(__name__)


def list_snapshots(destination_root) -> List[SnapshotInfo]:
    """List snapshot folders directly under the destination root.

    Args:
        destination_root: Folder that receives snapshots.

    Returns:
        Snapshots sorted oldest first. Fixed-width names make name order
        equal to creation order.

    Raises:
        OSError: If the destination root cannot be listed.
    """
    snapshots = []
    for entry in os.scandir(destination_root):
        if not is_snapshot_name(entry.name) or not entry.is_dir(follow_symlinks=False):
            continue
        snapshots.append(SnapshotInfo(
            name=entry.name,
            path=Path(entry.path),
            created=parse_snapshot_name(entry.name),
        ))
    snapshots.sort(key=lambda snapshot: snapshot.name)
    return snapshots


def prune(destination_root, max_backups: int) -> List[str]:
    """Delete the oldest snapshots beyond ``max_backups``.

    Each folder is deleted independently; a failure is logged and the
    remaining deletions are still attempted.

    Args:
        destination_root: Folder that receives snapshots.
        max_backups: Number of snapshots to keep.

    Returns:
        Names of the deleted snapshot folders.
    """
    if max_backups < 1:
        raise ValueError(f"max_backups must be at least 1, got {max_backups}")

    try:
        snapshots = list_snapshots(destination_root)
    except OSError as e:
        logger.error(f"Pruning failed: cannot list {destination_root}: {e}")
        return []

    excess = len(snapshots) - max_backups
    if excess <= 0:
        return []

    deleted = []
    for snapshot in snapshots[:excess]:
        try:
            shutil.rmtree(snapshot.path)
        except OSError as e:
            logger.error(f"Could not delete {snapshot.path}: {e}")
            continue
        deleted.append(snapshot.name)
        logger.info(f"Pruned old backup: {snapshot.name}")

    return deleted
