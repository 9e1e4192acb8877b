"""Backup scheduling: the repeating trigger and the backup cycle."""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from ..config.config_validator import ConfigValidator
from .activity import ActivityMonitor
from .errors import SmartBackupError
from .models import BackupConfiguration, CycleResult, SchedulerState
from .retention import prune
from .sizer import compute_size
from .snapshot import create_snapshot
from .timer import RepeatingTimer
from ..notifiers.events import EventChannel
from ..notifiers.log_notifier import build_notifier
from ..utils.formatters import format_file_size


class BackupScheduler:
    """Runs backup cycles on a repeating timer or on demand.

    At most one cycle runs at a time. A trigger that arrives while a cycle
    is in flight is dropped, not queued.
    """

    def __init__(self, store, events: Optional[EventChannel] = None, notifier=None,
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize the scheduler.

        Args:
            store: Settings store providing ``get``, ``set`` and ``all``.
            events: Channel receiving log lines and running status.
            notifier: Object with ``notify(title, body)``. When omitted, one is
                built from the current settings for every notification.
            clock: Source of the current time, used to name snapshots.
        """
        self.store = store
        self.events = events or EventChannel()
        self.notifier = notifier
        self.clock = clock
        self.state = SchedulerState()
        self.activity = ActivityMonitor()
        self.logger = logging.getLogger(__name__)

        self._cycle_lock = threading.Lock()
        self._state_lock = threading.RLock()

    @property
    def is_running(self) -> bool:
        return self.state.running

    @property
    def is_busy(self) -> bool:
        return self.state.busy

    def start(self, interval_minutes: Optional[int] = None) -> None:
        """Start, or restart, the repeating backup timer.

        Args:
            interval_minutes: Tick period. Defaults to the stored interval.
        """
        if interval_minutes is None:
            interval_minutes = self.store.get('interval') or 60
        if interval_minutes <= 0:
            raise ValueError(f"Interval must be positive, got {interval_minutes}")

        with self._state_lock:
            self._cancel_timer()
            timer = RepeatingTimer(interval_minutes * 60, self._tick)
            self.state.timer = timer
            self.state.running = True
            timer.start()

        self.events.emit_log(f"Starting auto-backup. Interval: {interval_minutes} mins.")
        self.events.emit_status(True)

    def stop(self) -> None:
        """Cancel the timer. A cycle already in flight runs to completion."""
        with self._state_lock:
            if not self.state.running:
                return
            self._cancel_timer()
            self.state.running = False

        self.events.emit_log("Auto-backup stopped.")
        self.events.emit_status(False)

    def _cancel_timer(self):
        if self.state.timer is not None:
            self.state.timer.cancel()
            self.state.timer = None

    def force_trigger(self) -> Optional[CycleResult]:
        """Run one cycle now, whether or not the timer is running.

        Returns:
            The cycle result, or None if another cycle was in flight.
        """
        return self._tick()

    def _tick(self) -> Optional[CycleResult]:
        if not self._cycle_lock.acquire(blocking=False):
            self.logger.debug("Backup already in progress, trigger dropped")
            return None

        try:
            self.state.busy = True
            return self._run_cycle()
        finally:
            self.state.busy = False
            self._cycle_lock.release()
            self.events.emit_status(self.state.running)

    def _run_cycle(self) -> CycleResult:
        """Snapshot, probe, check activity and prune, in that order."""
        result = CycleResult(started=self.clock())
        self.events.emit_status(True)
        self.events.emit_log("Starting backup...")

        try:
            config = BackupConfiguration.from_settings(self.store.all())

            result.snapshot_path = create_snapshot(config, now=result.started)
            self.events.emit_log(f"Backup created at: {result.snapshot_path}")

            result.size = compute_size(result.snapshot_path)
            self.events.emit_log(
                f"Backup size: {result.size} bytes ({format_file_size(result.size)})")

            result.inactive = self.activity.observe(result.size, config.smart_streak)
            if self.activity.state.streak:
                self.events.emit_log(
                    f"Same size streak: {self.activity.state.run_length}/{config.smart_streak}")
            if result.inactive:
                self._stop_for_inactivity()

            result.pruned = prune(config.destination, config.max_backups)
            for name in result.pruned:
                self.events.emit_log(f"Pruned old backup: {name}")

        except (SmartBackupError, OSError) as e:
            result.error = e
            self.events.emit_log(f"Backup failed: {e}", level=logging.ERROR)

        result.finished = self.clock()
        return result

    def _stop_for_inactivity(self):
        self.events.emit_log("Smart Check Triggered: Stopping auto-backups.", level=logging.WARNING)
        self.stop()
        self.notify("Smart Backup", "Backup stopped due to inactivity (Smart Check).")

    def notify(self, title: str, body: str) -> bool:
        """Send a notification through the configured notifier."""
        notifier = self.notifier or build_notifier(self.store.all())
        return notifier.notify(title, body)

    def get_settings(self) -> Dict[str, Any]:
        """Return the current settings, defaults included."""
        return self.store.all()

    def save_settings(self, values: Mapping[str, Any]) -> None:
        """Persist new settings and apply them.

        A running timer is restarted so a new interval takes effect
        immediately.

        Args:
            values: Settings to store.

        Raises:
            ConfigError: If the merged settings are invalid.
        """
        merged = self.store.all()
        merged.update(values)
        ConfigValidator().validate_schedule(merged)

        self.store.set(values)
        self.events.emit_log("Settings saved.")
        self.notify("Configuration Saved", "Your settings have been updated.")

        if self.is_running:
            self.start()
