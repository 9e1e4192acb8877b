"""Tests for the backup scheduler and the backup cycle."""

import threading
import time

import pytest

from smart_backup.config.config_manager import SettingsStore
from smart_backup.core import scheduler as scheduler_module
from smart_backup.core.errors import ConfigError, CopyError, SourceNotFound
from smart_backup.core.scheduler import BackupScheduler
from smart_backup.core.timer import RepeatingTimer
from smart_backup.notifiers.events import EventChannel
from smart_backup.notifiers.log_notifier import LogNotifier


def snapshot_names(dest_dir):
    return sorted(p.name for p in dest_dir.iterdir() if p.name.startswith("Backup_"))


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def events():
    channel = EventChannel()
    channel.logs = []
    channel.statuses = []
    channel.subscribe(on_log=channel.logs.append, on_status=channel.statuses.append)
    return channel


@pytest.fixture
def scheduler(store, events, notifier, clock):
    s = BackupScheduler(store, events=events, notifier=notifier, clock=clock)
    yield s
    s.stop()


# ---------------------------------------------------------------------------
# Single cycle
# ---------------------------------------------------------------------------

class TestForceTrigger:
    def test_creates_filtered_snapshot(self, scheduler, dest_dir):
        result = scheduler.force_trigger()

        assert result.succeeded
        assert result.snapshot_path == dest_dir / "Backup_2024-01-01_12-00-00"
        assert result.size == 10
        assert not (result.snapshot_path / "node_modules").exists()
        assert result.inactive is False
        assert result.pruned == []

    def test_does_not_change_state(self, scheduler):
        scheduler.force_trigger()
        assert scheduler.is_running is False
        assert scheduler.is_busy is False

    def test_works_while_running(self, scheduler, dest_dir):
        scheduler.start(30)
        result = scheduler.force_trigger()
        assert result.succeeded
        assert scheduler.is_running is True

    def test_logs_progress(self, scheduler, events):
        scheduler.force_trigger()
        messages = " | ".join(events.logs)
        assert "Starting backup..." in messages
        assert "Backup created at:" in messages
        assert "Backup size: 10 bytes" in messages

    def test_status_reports_idle_after_cycle(self, scheduler, events):
        scheduler.force_trigger()
        assert events.statuses == [True, False]

    def test_settings_read_every_cycle(self, scheduler, store, source_dir):
        first = scheduler.force_trigger()
        store.set({'excludes': ''})
        second = scheduler.force_trigger()

        assert not (first.snapshot_path / "node_modules").exists()
        assert (second.snapshot_path / "node_modules" / "x.txt").exists()
        assert second.size == 15

    def test_broken_email_section_still_backs_up(self, scheduler, store, dest_dir):
        store.set({'email': {'smtp_server': 'smtp.example.com'}})

        result = scheduler.force_trigger()

        assert result.succeeded
        assert snapshot_names(dest_dir) == ["Backup_2024-01-01_12-00-00"]


class TestCycleErrors:
    def test_missing_configuration(self, tmp_path, events, notifier, clock):
        empty_store = SettingsStore(str(tmp_path / "empty.yaml"))
        scheduler = BackupScheduler(empty_store, events=events, notifier=notifier, clock=clock)

        result = scheduler.force_trigger()

        assert isinstance(result.error, ConfigError)
        assert result.snapshot_path is None
        assert scheduler.is_busy is False
        assert any("Backup failed" in line for line in events.logs)

    def test_missing_source_keeps_scheduler_running(self, scheduler, store, tmp_path, dest_dir):
        scheduler.start(30)
        store.set({'source': str(tmp_path / "gone")})

        result = scheduler.force_trigger()

        assert isinstance(result.error, SourceNotFound)
        assert scheduler.is_running is True
        assert snapshot_names(dest_dir) == []

    def test_copy_error_keeps_partial_and_running(self, scheduler, dest_dir, monkeypatch):
        def failing_create(config, now=None):
            partial = config.destination / "Backup_2024-01-01_12-00-00"
            partial.mkdir()
            raise CopyError("disk full", source_path=str(config.source), cause=OSError(28, "No space"))

        monkeypatch.setattr(scheduler_module, "create_snapshot", failing_create)
        scheduler.start(30)

        result = scheduler.force_trigger()

        assert isinstance(result.error, CopyError)
        assert scheduler.is_running is True
        assert snapshot_names(dest_dir) == ["Backup_2024-01-01_12-00-00"]

    def test_next_cycle_runs_after_failure(self, scheduler, store, source_dir, tmp_path):
        store.set({'source': str(tmp_path / "gone")})
        assert scheduler.force_trigger().error is not None

        store.set({'source': str(source_dir)})
        assert scheduler.force_trigger().succeeded

    def test_unexpected_error_propagates_and_clears_busy(self, scheduler, monkeypatch):
        def broken_probe(path):
            raise RuntimeError("bug")

        monkeypatch.setattr(scheduler_module, "compute_size", broken_probe)
        with pytest.raises(RuntimeError):
            scheduler.force_trigger()
        assert scheduler.is_busy is False

        monkeypatch.undo()
        assert scheduler.force_trigger().succeeded

    def test_listener_failure_does_not_break_cycle(self, scheduler, events):
        def bad_listener(line):
            raise RuntimeError("ui went away")

        events.subscribe(on_log=bad_listener)
        assert scheduler.force_trigger().succeeded


# ---------------------------------------------------------------------------
# Single-flight guard
# ---------------------------------------------------------------------------

class TestSingleFlight:
    def test_overlapping_trigger_is_dropped(self, scheduler, dest_dir, monkeypatch):
        entered = threading.Event()
        release = threading.Event()
        real_create = scheduler_module.create_snapshot

        def slow_create(config, now=None):
            entered.set()
            release.wait(timeout=5)
            return real_create(config, now=now)

        monkeypatch.setattr(scheduler_module, "create_snapshot", slow_create)

        results = []
        worker = threading.Thread(target=lambda: results.append(scheduler.force_trigger()))
        worker.start()
        assert entered.wait(timeout=5)

        assert scheduler.is_busy is True
        assert scheduler.force_trigger() is None

        release.set()
        worker.join(timeout=5)

        assert results[0].succeeded
        assert len(snapshot_names(dest_dir)) == 1
        assert scheduler.is_busy is False


# ---------------------------------------------------------------------------
# Inactivity and retention inside the cycle
# ---------------------------------------------------------------------------

class TestSmartCheck:
    def test_stops_after_identical_sizes(self, scheduler, notifier, events):
        scheduler.start(30)

        results = [scheduler.force_trigger() for _ in range(3)]

        assert [r.inactive for r in results] == [False, False, True]
        assert scheduler.is_running is False
        assert scheduler.state.timer is None
        assert any("inactivity" in body for _, body in notifier.notifications)
        assert events.statuses[-1] is False

    def test_changing_sizes_keep_running(self, scheduler, source_dir):
        scheduler.start(30)
        for i in range(4):
            (source_dir / f"new_{i}.txt").write_text("x" * (i + 1))
            assert scheduler.force_trigger().inactive is False
        assert scheduler.is_running is True

    def test_threshold_from_settings(self, scheduler, store):
        store.set({'smart_streak': 2})
        scheduler.start(30)
        scheduler.force_trigger()
        assert scheduler.force_trigger().inactive is True
        assert scheduler.is_running is False


class TestRetentionInCycle:
    def test_prunes_oldest(self, scheduler, store, dest_dir):
        store.set({'max_backups': 2, 'smart_streak': 10})

        results = [scheduler.force_trigger() for _ in range(3)]

        assert results[2].pruned == [results[0].snapshot_path.name]
        assert snapshot_names(dest_dir) == [
            results[1].snapshot_path.name,
            results[2].snapshot_path.name,
        ]


# ---------------------------------------------------------------------------
# Timer state machine
# ---------------------------------------------------------------------------

class TestStartStop:
    def test_start_installs_timer(self, scheduler, events):
        scheduler.start(5)

        assert scheduler.is_running is True
        assert scheduler.state.timer.interval == 300
        assert scheduler.state.timer.is_alive()
        assert events.statuses == [True]

    def test_restart_replaces_timer(self, scheduler):
        scheduler.start(5)
        first = scheduler.state.timer
        scheduler.start(10)

        assert first.cancelled
        assert scheduler.state.timer is not first
        assert scheduler.state.timer.interval == 600

    def test_start_uses_stored_interval(self, scheduler, store):
        store.set({'interval': 15})
        scheduler.start()
        assert scheduler.state.timer.interval == 900

    def test_invalid_interval(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.start(0)
        assert scheduler.is_running is False

    def test_stop(self, scheduler, events):
        scheduler.start(5)
        timer = scheduler.state.timer
        scheduler.stop()

        assert scheduler.is_running is False
        assert scheduler.state.timer is None
        assert timer.cancelled
        timer.join(timeout=5)
        assert not timer.is_alive()
        assert events.statuses == [True, False]

    def test_stop_when_idle_is_noop(self, scheduler, events):
        scheduler.stop()
        assert events.statuses == []
        assert events.logs == []

    def test_timer_ticks_run_cycles(self, scheduler, dest_dir):
        scheduler.start(0.002)
        timer = scheduler.state.timer

        assert wait_for(lambda: len(snapshot_names(dest_dir)) >= 1)

        scheduler.stop()
        timer.join(timeout=5)
        assert wait_for(lambda: not scheduler.is_busy)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:
    def test_save_persists_and_notifies(self, scheduler, store, notifier, events):
        scheduler.save_settings({'interval': 20, 'excludes': 'dist, build'})

        reloaded = SettingsStore(str(store.config_path))
        assert reloaded.get('interval') == 20
        assert reloaded.get('excludes') == 'dist, build'
        assert ("Configuration Saved", "Your settings have been updated.") in notifier.notifications
        assert "Settings saved." in " ".join(events.logs)

    def test_save_restarts_running_timer(self, scheduler):
        scheduler.start(5)
        first = scheduler.state.timer

        scheduler.save_settings({'interval': 20})

        assert first.cancelled
        assert scheduler.is_running is True
        assert scheduler.state.timer.interval == 1200

    def test_save_while_idle_stays_idle(self, scheduler):
        scheduler.save_settings({'interval': 20})
        assert scheduler.is_running is False
        assert scheduler.state.timer is None

    def test_invalid_settings_rejected(self, scheduler, store):
        with pytest.raises(ConfigError):
            scheduler.save_settings({'max_backups': 0})
        assert store.get('max_backups') == 10

    def test_get_settings_includes_defaults(self, scheduler, source_dir):
        settings = scheduler.get_settings()
        assert settings['source'] == str(source_dir)
        assert settings['interval'] == 60
        assert settings['smart_streak'] == 3


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class TestNotifications:
    @pytest.fixture
    def built(self, monkeypatch):
        """Record the settings every lazily built notifier sees."""
        seen = []

        def fake_build_notifier(settings):
            seen.append(settings)
            return LogNotifier()

        monkeypatch.setattr(scheduler_module, "build_notifier", fake_build_notifier)
        return seen

    def test_notifier_built_from_current_settings(self, store, events, clock, built):
        scheduler = BackupScheduler(store, events=events, clock=clock)
        email = {
            'smtp_server': 'smtp.example.com',
            'from_address': 'a@example.com',
            'to_addresses': ['b@example.com'],
        }

        scheduler.save_settings({'email': email})

        assert built[-1]['email'] == email

    def test_injected_notifier_is_used(self, scheduler, notifier, built):
        assert scheduler.notify("Smart Backup", "hello")
        assert notifier.notifications == [("Smart Backup", "hello")]
        assert built == []

    def test_broken_email_without_injected_notifier(self, store, events, clock, dest_dir):
        store.set({'email': {'smtp_server': 'smtp.example.com'}, 'smart_streak': 1})
        scheduler = BackupScheduler(store, events=events, clock=clock)

        first = scheduler.force_trigger()
        second = scheduler.force_trigger()

        assert first.succeeded
        assert second.succeeded
        assert second.inactive is True
        assert len(snapshot_names(dest_dir)) == 2


# ---------------------------------------------------------------------------
# Repeating timer
# ---------------------------------------------------------------------------

class CancelledDuringWait(threading.Event):
    """An event that is set while the timer is waiting on it."""

    def wait(self, timeout=None):
        self.set()
        return False


class TestRepeatingTimer:
    def test_cancel_during_wait_skips_call(self):
        calls = []
        timer = RepeatingTimer(60, lambda: calls.append(1))
        timer.finished = CancelledDuringWait()

        timer.run()

        assert calls == []
        assert timer.ticks == 0

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            RepeatingTimer(0, lambda: None)
