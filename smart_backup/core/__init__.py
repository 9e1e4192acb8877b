"""Core snapshot scheduling functionality."""

from .scheduler import BackupScheduler
from .snapshot import create_snapshot
from .retention import prune, list_snapshots
from .sizer import compute_size
from .exclusion import should_include
from .models import BackupConfiguration, SnapshotInfo, CycleResult

__all__ = ["BackupScheduler", "create_snapshot", "prune", "list_snapshots", "compute_size",
           "should_include", "BackupConfiguration", "SnapshotInfo", "CycleResult"]
