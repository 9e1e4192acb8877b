"""Configuration validation for smart backup."""

from pathlib import Path
from typing import Any, Mapping

from ..core.errors import ConfigError


class ConfigValidator:
    """Validates smart backup settings."""

    REQUIRED_PATHS = ['source', 'destination']
    POSITIVE_INTEGERS = ['interval', 'max_backups', 'smart_streak']
    REQUIRED_EMAIL_FIELDS = ['smtp_server', 'from_address', 'to_addresses']

    def validate(self, settings: Mapping[str, Any]) -> None:
        """Validate settings used by a backup cycle.

        Args:
            settings: Merged settings mapping.

        Raises:
            ConfigError: If settings are invalid.
        """
        self._validate_paths(settings)
        self.validate_schedule(settings)

    def validate_schedule(self, settings: Mapping[str, Any]) -> None:
        """Validate the numeric and boolean settings only.

        Args:
            settings: Merged settings mapping.

        Raises:
            ConfigError: If a value is missing or out of range.
        """
        for key in self.POSITIVE_INTEGERS:
            value = settings.get(key)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"Setting '{key}' must be an integer, got {value!r}")
            if value < 1:
                raise ConfigError(f"Setting '{key}' must be at least 1, got {value}")

        auto_start = settings.get('auto_start', False)
        if not isinstance(auto_start, bool):
            raise ConfigError(f"Setting 'auto_start' must be true or false, got {auto_start!r}")

        excludes = settings.get('excludes')
        if excludes is not None and not isinstance(excludes, (str, list)):
            raise ConfigError("Setting 'excludes' must be a comma-separated string or a list")

    def _validate_paths(self, settings: Mapping[str, Any]) -> None:
        """Validate source and destination.

        Raises:
            ConfigError: If a path is unset or the destination is inside the source.
        """
        missing = [key for key in self.REQUIRED_PATHS if not settings.get(key)]
        if missing:
            raise ConfigError(f"Source or destination not set: missing {missing}")

        source = Path(settings['source']).expanduser().resolve()
        destination = Path(settings['destination']).expanduser().resolve()
        if destination == source or source in destination.parents:
            raise ConfigError(f"Destination {destination} must not be inside source {source}")

    def validate_email(self, email_config: Mapping[str, Any]) -> None:
        """Validate the optional email section.

        Not part of ``validate``: backup cycles run without checking it.

        Args:
            email_config: Email configuration dictionary.

        Raises:
            ConfigError: If email configuration is invalid.
        """
        if not isinstance(email_config, Mapping):
            raise ConfigError("Email configuration must be a mapping")

        missing_fields = [field for field in self.REQUIRED_EMAIL_FIELDS if field not in email_config]
        if missing_fields:
            raise ConfigError(f"Email configuration missing required fields: {missing_fields}")

        if 'smtp_port' in email_config:
            try:
                port = int(email_config['smtp_port'])
                if not (1 <= port <= 65535):
                    raise ValueError()
            except (ValueError, TypeError):
                raise ConfigError(f"Email configuration has invalid SMTP port: {email_config['smtp_port']}")

        to_addresses = email_config.get('to_addresses', [])
        if not isinstance(to_addresses, list) or not to_addresses:
            raise ConfigError("Email to_addresses must be a non-empty list")
