"""Data models for snapshot scheduling."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from ..config.config_validator import ConfigValidator
from .exclusion import parse_excludes


@dataclass(frozen=True)
class BackupConfiguration:
    """Settings used by one backup cycle."""
    source: Path
    destination: Path
    excludes: FrozenSet[str] = frozenset()
    interval: int = 60
    max_backups: int = 10
    smart_streak: int = 3
    auto_start: bool = False

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "BackupConfiguration":
        """Build a configuration from a settings mapping.

        Args:
            settings: Merged settings as returned by the settings store.

        Returns:
            Validated BackupConfiguration.

        Raises:
            ConfigError: If required values are missing or out of range.
        """
        ConfigValidator().validate(settings)
        return cls(
            source=Path(settings['source']).expanduser(),
            destination=Path(settings['destination']).expanduser(),
            excludes=parse_excludes(settings.get('excludes')),
            interval=int(settings['interval']),
            max_backups=int(settings['max_backups']),
            smart_streak=int(settings['smart_streak']),
            auto_start=bool(settings.get('auto_start', False)),
        )


@dataclass
class SnapshotInfo:
    """A snapshot folder found under the destination root."""
    name: str
    path: Path
    created: datetime


@dataclass
class SchedulerState:
    """Running flag, active timer and single-flight busy flag."""
    running: bool = False
    timer: Optional[Any] = None
    busy: bool = False


@dataclass(frozen=True)
class ActivityState:
    """Last probed snapshot size and how many times it repeated."""
    last_size: Optional[int] = None
    streak: int = 0

    @property
    def run_length(self) -> int:
        """Number of consecutive cycles that probed ``last_size``."""
        if self.last_size is None:
            return 0
        return self.streak + 1


@dataclass
class CycleResult:
    """Outcome of one backup cycle."""
    started: datetime
    finished: Optional[datetime] = None
    snapshot_path: Optional[Path] = None
    size: Optional[int] = None
    inactive: bool = False
    pruned: List[str] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.snapshot_path is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'started': self.started.isoformat(),
            'finished': self.finished.isoformat() if self.finished else None,
            'snapshot_path': str(self.snapshot_path) if self.snapshot_path else None,
            'size': self.size,
            'inactive': self.inactive,
            'pruned': list(self.pruned),
            'error': str(self.error) if self.error else None,
        }
