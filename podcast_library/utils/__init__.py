"""Utility modules for the library store."""

from .time_utils import DAY_MS, HOUR_MS, days_to_ms, now_ms

__all__ = ["DAY_MS", "HOUR_MS", "days_to_ms", "now_ms"]
