"""Utility modules for smart backup."""

from .formatters import format_file_size, format_date

__all__ = ["format_file_size", "format_date"]
