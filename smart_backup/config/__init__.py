"""Configuration management for smart backup."""

from .config_manager import SettingsStore
from .config_validator import ConfigValidator

__all__ = ["SettingsStore", "ConfigValidator"]
