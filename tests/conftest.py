"""Shared fixtures for smart backup tests."""

from datetime import datetime, timedelta

import pytest

from smart_backup.config.config_manager import SettingsStore


class FakeClock:
    """Returns a new time one second later on every call."""

    def __init__(self, start=datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now += timedelta(seconds=1)
        return current


class RecordingNotifier:
    def __init__(self):
        self.notifications = []

    def notify(self, title, body):
        self.notifications.append((title, body))
        return True


@pytest.fixture
def source_dir(tmp_path):
    d = tmp_path / "source"
    d.mkdir()
    (d / "a.txt").write_bytes(b"0123456789")
    (d / "node_modules").mkdir()
    (d / "node_modules" / "x.txt").write_bytes(b"abcde")
    return d


@pytest.fixture
def dest_dir(tmp_path):
    d = tmp_path / "backups"
    d.mkdir()
    return d


@pytest.fixture
def store(tmp_path, source_dir, dest_dir):
    s = SettingsStore(str(tmp_path / "config.yaml"))
    s.set({
        'source': str(source_dir),
        'destination': str(dest_dir),
        'excludes': 'node_modules',
    })
    return s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()
