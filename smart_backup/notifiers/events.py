"""Fire-and-forget log and status channel for presentation layers."""

import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional


LogListener = Callable[[str], None]
StatusListener = Callable[[bool], None]


class EventChannel:
    """Broadcasts log lines and running status to any subscribers.

    Emitting never fails: listener errors are logged and ignored, and
    having no listeners at all is the normal case.
    """

    def __init__(self):
        self._log_listeners: List[LogListener] = []
        self._status_listeners: List[StatusListener] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def subscribe(self, on_log: Optional[LogListener] = None,
                  on_status: Optional[StatusListener] = None) -> Callable[[], None]:
        """Register listeners.

        Args:
            on_log: Called with each formatted log line.
            on_status: Called with the running flag.

        Returns:
            Callable that removes the listeners again.
        """
        with self._lock:
            if on_log:
                self._log_listeners.append(on_log)
            if on_status:
                self._status_listeners.append(on_status)

        def unsubscribe():
            with self._lock:
                if on_log in self._log_listeners:
                    self._log_listeners.remove(on_log)
                if on_status in self._status_listeners:
                    self._status_listeners.remove(on_status)

        return unsubscribe

    def emit_log(self, message: str, level: int = logging.INFO) -> str:
        """Log a message and forward it to log listeners.

        Returns:
            The line as delivered to listeners.
        """
        self.logger.log(level, message)
        line = f"[{datetime.now().strftime('%H:%M:%S')}] {message}"
        with self._lock:
            listeners = list(self._log_listeners)
        for listener in listeners:
            self._deliver(listener, line)
        return line

    def emit_status(self, running: bool):
        with self._lock:
            listeners = list(self._status_listeners)
        for listener in listeners:
            self._deliver(listener, running)

    def _deliver(self, listener, value):
        try:
            listener(value)
        except Exception as e:
            self.logger.warning(f"Event listener {listener!r} failed: {e}")
