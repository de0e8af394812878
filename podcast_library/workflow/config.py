"""Configuration for background maintenance workers.

Provides environment-based configuration for the retention policy and the
integrity verifier's clock-skew tolerance.
"""

import os
from dataclasses import dataclass
from typing import Optional

from podcast_library.utils.time_utils import HOUR_MS, days_to_ms


def _get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Parse an integer from an environment variable with validation.

    Args:
        name: Environment variable name.
        default: Default value if env var is not set.
        min_val: Minimum allowed value (inclusive), or None for no minimum.
        max_val: Maximum allowed value (inclusive), or None for no maximum.

    Returns:
        The parsed and validated integer value.

    Raises:
        ValueError: If the value cannot be parsed as an integer or is out of range.
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid integer"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be <= {max_val}"
        )

    return value


@dataclass
class RetentionConfig:
    """Configuration for playback history retention.

    The policy keeps at most `max_sessions` sessions AND nothing older than
    `retention_days`, whichever removes more.
    All settings can be overridden via environment variables.
    """

    max_sessions: int = 1000
    retention_days: int = 180

    # Deletion batching
    batch_size: int = 100
    batch_delay_ms: int = 16  # Pause between batches so other tasks can run

    # Integrity verification
    clock_skew_hours: int = 24

    @property
    def retention_ms(self) -> int:
        """Retention window in milliseconds."""
        return days_to_ms(self.retention_days)

    @property
    def batch_delay_seconds(self) -> float:
        """Pause between deletion batches in seconds."""
        return self.batch_delay_ms / 1000

    @property
    def clock_skew_ms(self) -> int:
        """Allowed future clock skew in milliseconds."""
        return self.clock_skew_hours * HOUR_MS

    @classmethod
    def from_env(cls) -> "RetentionConfig":
        """Create configuration from environment variables.

        Returns:
            RetentionConfig instance with values from environment or defaults.

        Raises:
            ValueError: If any environment variable has an invalid value.
        """
        return cls(
            max_sessions=_get_int_env("RETENTION_MAX_SESSIONS", 1000, min_val=1),
            retention_days=_get_int_env("RETENTION_DAYS", 180, min_val=1),
            batch_size=_get_int_env("RETENTION_BATCH_SIZE", 100, min_val=1),
            batch_delay_ms=_get_int_env("RETENTION_BATCH_DELAY_MS", 16, min_val=0),
            clock_skew_hours=_get_int_env(
                "INTEGRITY_CLOCK_SKEW_HOURS", 24, min_val=0
            ),
        )
