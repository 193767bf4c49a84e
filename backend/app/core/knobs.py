"""
Throttle knobs shared by every timing computation.

A single ``ThrottleKnobs`` handle is created by the runtime and passed to the
scheduler, the notification engine and the API layer. Writes are clamped and
serialized; reads are plain attribute loads so that every cycle sees the
latest value without caching anything derived from it.
"""

import threading

from app.core.config import (
    THREAD_COUNT_MAX,
    THREAD_COUNT_MIN,
    THROTTLE_LEVEL_MAX,
    THROTTLE_LEVEL_MIN,
    clamp,
    settings,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


class ThrottleKnobs:
    """Throttle level (1-9) and consumption thread count (1-8)."""

    def __init__(
        self,
        throttle_level: int | None = None,
        thread_count: int | None = None,
    ):
        self._lock = threading.Lock()
        self._throttle_level = clamp(
            settings.DEFAULT_THROTTLE_LEVEL if throttle_level is None else throttle_level,
            THROTTLE_LEVEL_MIN,
            THROTTLE_LEVEL_MAX,
        )
        self._thread_count = clamp(
            settings.DEFAULT_THREAD_COUNT if thread_count is None else thread_count,
            THREAD_COUNT_MIN,
            THREAD_COUNT_MAX,
        )

    @property
    def throttle_level(self) -> int:
        return self._throttle_level

    @property
    def thread_count(self) -> int:
        return self._thread_count

    def set_throttle_level(self, level: int) -> int:
        """Clamp and store a new throttle level, returning the stored value."""
        value = clamp(int(level), THROTTLE_LEVEL_MIN, THROTTLE_LEVEL_MAX)
        with self._lock:
            self._throttle_level = value
        logger.info("throttle_level_set", requested=level, level=value)
        return value

    def set_thread_count(self, count: int) -> int:
        """Clamp and store a new thread count, returning the stored value."""
        value = clamp(int(count), THREAD_COUNT_MIN, THREAD_COUNT_MAX)
        with self._lock:
            self._thread_count = value
        logger.info("thread_count_set", requested=count, thread_count=value)
        return value
