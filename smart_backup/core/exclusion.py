"""Path exclusion rules for snapshot copies."""

import os
import re
from typing import FrozenSet, Iterable, Union

_SEPARATORS = re.compile(r"[\\/]" if os.sep == "\\" else r"/")


def parse_excludes(raw: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    """Parse the stored exclude setting into a set of segment names.

    Args:
        raw: Comma-separated string (``"node_modules, .git"``) or a list.

    Returns:
        Frozen set of non-empty, stripped names.
    """
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        items = raw.split(',')
    else:
        items = [str(item) for item in raw]
    return frozenset(item.strip() for item in items if item.strip())


def path_segments(relative_path: str):
    """Split a relative path into its components."""
    return [segment for segment in _SEPARATORS.split(str(relative_path)) if segment]


def should_include(relative_path: str, excludes: Iterable[str]) -> bool:
    """Decide whether a path relative to the source root is copied.

    A path is excluded when any of its segments is exactly one of the
    excluded names. Matching is case-sensitive and never partial, so
    excluding ``temp`` keeps ``templates``. The source root itself (an
    empty path or ``"."``) is always included.

    Args:
        relative_path: Path relative to the source root.
        excludes: Excluded segment names.

    Returns:
        True if the path should be copied.
    """
    segments = path_segments(relative_path)
    if not segments or segments == ['.']:
        return True
    excluded = excludes if isinstance(excludes, (set, frozenset)) else set(excludes)
    return not any(segment in excluded for segment in segments)
