"""Inactivity detection based on repeated snapshot sizes."""

from typing import Tuple

from .models import ActivityState


def observe(current_size: int, state: ActivityState, threshold: int) -> Tuple[ActivityState, bool]:
    """Record a probed snapshot size.

    The first observation and any size change reset the streak. A repeated
    size extends it, and inactivity is signalled once ``threshold``
    consecutive cycles have probed the same size.

    Args:
        current_size: Size of the snapshot just taken, in bytes.
        state: Activity state before this observation.
        threshold: Number of identical consecutive sizes that means inactive.

    Returns:
        Tuple of (new state, inactive flag).
    """
    if state.last_size is None or current_size != state.last_size:
        return ActivityState(last_size=current_size, streak=0), False

    new_state = ActivityState(last_size=current_size, streak=state.streak + 1)
    return new_state, new_state.run_length >= threshold


class ActivityMonitor:
    """Holds the activity state across cycles."""

    def __init__(self):
        self.state = ActivityState()

    def observe(self, current_size: int, threshold: int) -> bool:
        """Update the state with a new size and report inactivity."""
        self.state, inactive = observe(current_size, self.state, threshold)
        return inactive

    def reset(self):
        self.state = ActivityState()
