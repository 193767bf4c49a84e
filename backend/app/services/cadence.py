"""
Cadence calculator.

Every timing in the system is a deterministic function of the throttle level
(1-9) and, for volumes, the thread count (1-8). Callers pass the current knob
values on every cycle; nothing here caches.

    scroll(l)   = 1 + 4 * (l - 1) / 8           1 -> 5 minutes
    active(l)   = 0.02 + 0.89 * (l - 1) / 8     2% -> 91%
    standby(l)  = scroll(l) * (1 / active(l) - 1)
    cycle(l)    = scroll(l) + standby(l)
"""

import math
from typing import Tuple

from app.core.config import (
    THREAD_COUNT_MAX,
    THREAD_COUNT_MIN,
    THROTTLE_LEVEL_MAX,
    THROTTLE_LEVEL_MIN,
    clamp,
)


# Items kept buffered per consumption thread
BASE_BUFFER_PER_THREAD = 20

# Crawl interval at level 1; each level above shortens it by a minute
MAX_CRAWL_INTERVAL_MINUTES = 15


def clamp_level(level: int) -> int:
    return clamp(int(level), THROTTLE_LEVEL_MIN, THROTTLE_LEVEL_MAX)


def clamp_threads(thread_count: int) -> int:
    return clamp(int(thread_count), THREAD_COUNT_MIN, THREAD_COUNT_MAX)


# ================================
# Scroll / standby cadence
# ================================

def scroll_minutes(level: int) -> float:
    """Length of one simulated scrolling session."""
    level = clamp_level(level)
    return 1.0 + 4.0 * ((level - 1) / 8.0)


def active_fraction(level: int) -> float:
    """Share of the cycle spent scrolling; never below 0.02."""
    level = clamp_level(level)
    return 0.02 + 0.89 * ((level - 1) / 8.0)


def standby_minutes(level: int) -> float:
    """Idle time between two scrolling sessions."""
    return scroll_minutes(level) * ((1.0 / active_fraction(level)) - 1.0)


def total_cycle_minutes(level: int) -> float:
    """Scroll plus standby; the notification loop waits this long."""
    return scroll_minutes(level) + standby_minutes(level)


def items_per_hour(level: int) -> float:
    return 60.0 * scroll_minutes(level) / total_cycle_minutes(level)


def items_per_minute(level: int) -> float:
    return items_per_hour(level) / 60.0


# ================================
# Crawl cadence
# ================================

def crawl_interval_minutes(level: int) -> float:
    """15 minutes at level 1 down to 7 minutes at level 9."""
    return float(MAX_CRAWL_INTERVAL_MINUTES - (clamp_level(level) - 1))


def base_providers_per_cycle(level: int) -> int:
    """2 providers at level 1 up to 6 at level 9."""
    return 2 + (clamp_level(level) - 1) // 2


def providers_per_cycle(level: int, thread_count: int, provider_count: int) -> int:
    """
    Providers visited in one crawl cycle.

    The level-based count is multiplied by ceil(threads / 4) and capped at
    the number of distinct providers.
    """
    if provider_count <= 0:
        return 0
    multiplier = math.ceil(clamp_threads(thread_count) / 4)
    return min(provider_count, base_providers_per_cycle(level) * multiplier)


# ================================
# Consumption volume
# ================================

def consumption_budget_for_elapsed(elapsed_minutes: float, level: int, thread_count: int) -> float:
    """
    Budget owed for a period of inactivity.

    items = elapsed_minutes * items_per_minute(level) * threads
    """
    if elapsed_minutes <= 0:
        return 0.0
    return elapsed_minutes * items_per_minute(level) * clamp_threads(thread_count)


def buffer_requirements(level: int, thread_count: int, download_hours: float = 2.0) -> Tuple[int, int]:
    """
    Items to keep buffered.

    Returns:
        (base_buffer, download_target): 20 items per thread, plus what the
        current level consumes in ``download_hours``
    """
    threads = clamp_threads(thread_count)
    base_buffer = BASE_BUFFER_PER_THREAD * threads
    download_target = int(items_per_hour(level) * download_hours * threads)
    return base_buffer, download_target
