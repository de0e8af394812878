"""Exception types raised by the library store."""

from enum import Enum
from typing import Optional


class IntegrityErrorCode(str, Enum):
    """Reasons a vault snapshot can fail integrity verification."""

    DUPLICATE_ID = "DuplicateId"
    DANGLING_SUBTITLE_REFERENCE = "DanglingSubtitleReference"
    DANGLING_TRACK_REFERENCE = "DanglingTrackReference"
    DANGLING_SESSION_REFERENCE = "DanglingSessionReference"
    FUTURE_TIMESTAMP = "FutureTimestamp"
    DUPLICATE_SUBSCRIPTION_FEED = "DuplicateSubscriptionFeed"
    DUPLICATE_FAVORITE_KEY = "DuplicateFavoriteKey"


class LibraryError(Exception):
    """Base class for all library store errors."""


class NotFound(LibraryError):
    """Raised when an operation targets a key that does not exist."""

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class StorageUnavailable(LibraryError):
    """Raised when the underlying database rejects or cannot complete a write."""


class MalformedSnapshot(LibraryError):
    """Raised when a vault payload does not match the expected structure."""


class IntegrityViolation(LibraryError):
    """Raised when a structurally valid vault fails integrity verification.

    Attributes:
        code: The specific integrity check that failed.
        reason: Human-readable description of the failure.
    """

    def __init__(self, reason: str, code: Optional[IntegrityErrorCode] = None):
        self.reason = reason
        self.code = code
        super().__init__(reason)


class InvalidSessionOrigin(LibraryError, ValueError):
    """Raised when a session would own an audio blob and reference a track at once."""


class InvalidFieldValue(LibraryError, ValueError):
    """Raised when a write would store a value outside a field's allowed set."""
