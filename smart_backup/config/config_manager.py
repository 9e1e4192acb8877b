"""Persistent settings store for smart backup."""

import copy
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ..core.errors import ConfigError


class SettingsStore:
    """YAML-backed key/value settings, durable across restarts."""

    DEFAULT_CONFIG_LOCATIONS = [
        "config.yaml",
        "config.yml",
        os.path.expanduser("~/.smart-backup/config.yaml"),
        os.path.expanduser("~/.smart-backup/config.yml"),
        "/etc/smart-backup/config.yaml",
        "/etc/smart-backup/config.yml"
    ]

    USER_CONFIG_PATH = os.path.expanduser("~/.smart-backup/config.yaml")

    DEFAULTS: Dict[str, Any] = {
        'source': None,
        'destination': None,
        'excludes': 'node_modules, .git, temp',
        'interval': 60,
        'max_backups': 10,
        'smart_streak': 3,
        'auto_start': False,
        'logging': {
            'level': 'INFO',
            'file': None,
            'max_size_mb': 10,
            'backup_count': 5
        }
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize settings store.

        Args:
            config_path: Optional path to the settings file. If not provided,
                        the default locations are searched and the user
                        location is used when none exists.
        """
        self.config_path = Path(config_path or self._find_config_file()).expanduser()
        self.logger = logging.getLogger(__name__)
        self._data: Dict[str, Any] = {}
        self._mtime: Optional[tuple] = None
        self._lock = threading.RLock()

    def _find_config_file(self) -> str:
        for location in self.DEFAULT_CONFIG_LOCATIONS:
            if os.path.exists(location):
                return location
        return self.USER_CONFIG_PATH

    def _reload(self) -> None:
        """Re-read the settings file if it changed on disk.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        try:
            stat = self.config_path.stat()
        except FileNotFoundError:
            self._data, self._mtime = {}, None
            return

        mtime = (stat.st_mtime_ns, stat.st_size)
        if mtime == self._mtime:
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {self.config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Error reading config file {self.config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.config_path} must contain a mapping")

        self._data, self._mtime = data, mtime
        self.logger.debug(f"Loaded settings from {self.config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a single setting, falling back to the built-in default."""
        with self._lock:
            self._reload()
            if key in self._data:
                return copy.deepcopy(self._data[key])
            if key in self.DEFAULTS:
                return copy.deepcopy(self.DEFAULTS[key])
            return default

    def all(self) -> Dict[str, Any]:
        """Return defaults merged with stored settings."""
        with self._lock:
            self._reload()
            merged = copy.deepcopy(self.DEFAULTS)
            for key, value in self._data.items():
                if isinstance(value, dict) and isinstance(merged.get(key), dict):
                    merged[key].update(value)
                else:
                    merged[key] = copy.deepcopy(value)
            return merged

    def set(self, values: Mapping[str, Any]) -> None:
        """Merge values into the stored settings and write them to disk.

        Args:
            values: Settings to store.
        """
        with self._lock:
            self._reload()
            data = copy.deepcopy(self._data)
            data.update(copy.deepcopy(dict(values)))
            self._write(data)
            self._data = data

    def _write(self, data: Dict[str, Any]) -> None:
        """Atomically replace the settings file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=str(self.config_path.parent),
                                         prefix='.settings-', suffix='.yaml')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(temp_path, self.config_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        stat = self.config_path.stat()
        self._mtime = (stat.st_mtime_ns, stat.st_size)
        self.logger.debug(f"Saved settings to {self.config_path}")
