"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/events.py
Progress/event channel produced by the engine and consumed by a UI or CLI.

Every event is delivered as `callback(name, payload)` where payload is a
plain dict, so adapters (Qt signals, console printers) need no engine types.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

SCAN_PROGRESS = "scan-progress"            # {count}
SCAN_COMPLETE = "scan-complete"            # {count}
SCAN_CANCELLED = "scan-cancelled"          # {}
PROCESSING_PROGRESS = "processing-progress"  # {current, total} partial-hash pass
HASHING_PROGRESS = "hashing-progress"      # {current, total} full-hash pass
PROCESSING_COMPLETE = "processing-complete"  # {}

EventCallback = Callable[[str, Dict], None]


def emit(callback: Optional[EventCallback], name: str, payload: Optional[Dict] = None) -> None:
    """Deliver one event. A failing consumer is logged and never stops the engine."""
    if callback is None:
        return
    try:
        callback(name, payload or {})
    except Exception as e:
        logger.warning(f"Error in event handler for '{name}': {e}")


class ProgressThrottle:
    """
    Time-sliced gate for progress notifications.
    `ready()` returns True at most once per `interval` seconds; safe across threads.
    """

    def __init__(self, interval: float = 0.2, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last = clock()
        self._lock = threading.Lock()

    def ready(self) -> bool:
        with self._lock:
            now = self._clock()
            if now - self._last >= self.interval:
                self._last = now
                return True
            return False
