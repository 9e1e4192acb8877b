"""Best-effort directory size measurement."""

import logging
import os

logger = logging.getLogger(__name__)


def compute_size(directory_path) -> int:
    """Sum the sizes of all regular files under a directory.

    Entries that cannot be read are logged and counted as zero, so the
    result is an undercount rather than an error.

    Args:
        directory_path: Directory to measure.

    Returns:
        Total size in bytes.
    """
    total_size = 0

    try:
        entries = list(os.scandir(directory_path))
    except OSError as e:
        logger.warning(f"Could not list {directory_path}: {e}")
        return 0

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                total_size += compute_size(entry.path)
            elif entry.is_file(follow_symlinks=False):
                total_size += entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            logger.warning(f"Could not measure {entry.path}: {e}")

    return total_size
