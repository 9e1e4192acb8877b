"""Exception types raised by the snapshot engine."""

from typing import Optional


class SmartBackupError(Exception):
    """Base class for all backup cycle errors."""


class ConfigError(SmartBackupError, ValueError):
    """Configuration is missing or invalid."""


class SourceNotFound(SmartBackupError, FileNotFoundError):
    """The source directory does not exist."""


class CopyError(SmartBackupError):
    """Copying the source tree into a snapshot failed."""

    def __init__(self, message: str, source_path: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.source_path = source_path
        self.cause = cause
