"""Epoch-millisecond time helpers.

All persisted timestamps are integer milliseconds since the Unix epoch so that
vault snapshots round-trip without conversion.
"""

import time

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def days_to_ms(days: int) -> int:
    """Convert a number of days to milliseconds."""
    return days * DAY_MS
