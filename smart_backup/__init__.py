"""
Smart Backup - periodic snapshot backups with inactivity detection.

This package copies a source directory into timestamped snapshot folders on a
schedule, skips excluded path segments, stops itself when nothing changes and
prunes old snapshots.
"""

__version__ = "1.0.0"

from .core.scheduler import BackupScheduler
from .config.config_manager import SettingsStore
from .notifiers.events import EventChannel

__all__ = ["BackupScheduler", "SettingsStore", "EventChannel"]
