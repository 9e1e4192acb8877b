"""Cancellable repeating timer."""

import logging
import threading
from typing import Callable, Optional


class RepeatingTimer(threading.Thread):
    """Calls a function every ``interval`` seconds until cancelled.

    Cancelling only prevents future calls; a call in progress runs to
    completion. The callback may cancel its own timer.
    """

    def __init__(self, interval: float, function: Callable[[], object], name: Optional[str] = None):
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval}")
        super().__init__(name=name or "smart-backup-timer", daemon=True)
        self.interval = interval
        self.function = function
        self.finished = threading.Event()
        self.ticks = 0
        self.logger = logging.getLogger(__name__)

    def run(self):
        while not self.finished.wait(self.interval):
            if self.finished.is_set():
                break
            self.ticks += 1
            self.logger.debug(f"Timer {self.name} tick {self.ticks}")
            self.function()

    def cancel(self):
        """Stop future ticks."""
        self.finished.set()

    @property
    def cancelled(self) -> bool:
        return self.finished.is_set()
