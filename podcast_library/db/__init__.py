"""Database module for library persistence.

Provides:
- SQLAlchemy ORM models (sessions, blobs, subscriptions, favorites, settings,
  folders, tracks, track subtitles)
- Repository interface and implementation
- Factory functions for creating repositories
"""

from .factory import create_repository, create_repository_from_config
from .models import (
    AudioBlob,
    Base,
    Favorite,
    Folder,
    LocalSubtitle,
    LocalTrack,
    PlaybackSession,
    Setting,
    Subscription,
    SubtitleBlob,
)
from .repository import (
    LibraryRepositoryInterface,
    SQLAlchemyLibraryRepository,
    make_favorite_key,
)

__all__ = [
    "Base",
    "PlaybackSession",
    "AudioBlob",
    "SubtitleBlob",
    "Subscription",
    "Favorite",
    "Setting",
    "Folder",
    "LocalTrack",
    "LocalSubtitle",
    "LibraryRepositoryInterface",
    "SQLAlchemyLibraryRepository",
    "create_repository",
    "create_repository_from_config",
    "make_favorite_key",
]
