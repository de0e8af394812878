"""SQLAlchemy ORM models for local library data.

Reference columns (audio_id, subtitle_id, local_track_id, folder_id, track_id)
are plain indexed strings, not database foreign keys: the cascade deleter and
the integrity verifier keep the reference graph consistent.
"""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Float,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON

from podcast_library.utils.time_utils import now_ms

SESSION_SOURCES = ("local", "remote")
SUBTITLE_FORMATS = ("srt", "vtt")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class PlaybackSession(Base):
    """A listening session.

    A session either owns its audio blob directly (bare file upload), points
    at a local Track through `local_track_id`, or streams remote audio. It
    never does the first two at once; see `origin`.
    """

    __tablename__ = "playback_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="local")
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="Untitled")

    # Timestamps (epoch ms)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)
    last_played_at: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=now_ms
    )

    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    duration: Mapped[float] = mapped_column(Float, default=0)
    progress: Mapped[float] = mapped_column(Float, default=0)

    # Owned blobs
    audio_id: Mapped[Optional[str]] = mapped_column(String(36))
    subtitle_id: Mapped[Optional[str]] = mapped_column(String(36))
    has_audio_blob: Mapped[bool] = mapped_column(Boolean, default=False)
    subtitle_type: Mapped[Optional[str]] = mapped_column(String(8))
    audio_filename: Mapped[str] = mapped_column(String(1024), default="")
    subtitle_filename: Mapped[str] = mapped_column(String(1024), default="")

    # Resume / local track
    audio_url: Mapped[Optional[str]] = mapped_column(String(2048))
    local_track_id: Mapped[Optional[str]] = mapped_column(String(36))

    # Episode metadata for history display
    artwork_url: Mapped[Optional[str]] = mapped_column(String(2048))
    description: Mapped[Optional[str]] = mapped_column(Text)
    podcast_title: Mapped[Optional[str]] = mapped_column(String(512))
    podcast_feed_url: Mapped[Optional[str]] = mapped_column(String(2048))
    published_at: Mapped[Optional[int]] = mapped_column(BigInteger)
    episode_id: Mapped[Optional[str]] = mapped_column(String(2048))

    # Attributes carried by imported vaults that this schema does not model
    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_playback_sessions_last_played_at", "last_played_at"),
        Index("ix_playback_sessions_audio_url", "audio_url"),
        Index("ix_playback_sessions_local_track_id", "local_track_id"),
        Index("ix_playback_sessions_episode_id", "episode_id"),
        Index("ix_playback_sessions_created_at", "created_at"),
    )

    @property
    def origin(self) -> str:
        """Where the session's audio comes from: "blob", "track" or "remote"."""
        if self.local_track_id:
            return "track"
        if self.audio_id:
            return "blob"
        return "remote"

    def __repr__(self) -> str:
        return f"<PlaybackSession(id={self.id}, title={self.title!r})>"


class AudioBlob(Base):
    """Raw audio bytes owned by exactly one session or track."""

    __tablename__ = "audio_blobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(String(128), default="")
    filename: Mapped[str] = mapped_column(String(1024), default="")
    stored_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (Index("ix_audio_blobs_stored_at", "stored_at"),)

    def __repr__(self) -> str:
        return f"<AudioBlob(id={self.id}, filename={self.filename!r}, size={self.size})>"


class SubtitleBlob(Base):
    """Caption text owned by exactly one session or track subtitle."""

    __tablename__ = "subtitle_blobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    filename: Mapped[str] = mapped_column(String(1024), default="")
    format: Mapped[str] = mapped_column(String(8), nullable=False, default="srt")
    stored_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (Index("ix_subtitle_blobs_stored_at", "stored_at"),)

    def __repr__(self) -> str:
        return f"<SubtitleBlob(id={self.id}, filename={self.filename!r})>"


class Subscription(Base):
    """Podcast subscription, unique by feed URL."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    feed_url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    author: Mapped[str] = mapped_column(String(512), default="")
    artwork_url: Mapped[str] = mapped_column(String(2048), default="")
    added_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)
    provider_podcast_id: Mapped[Optional[str]] = mapped_column(String(64))

    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_subscriptions_added_at", "added_at"),
        Index("ix_subscriptions_provider_podcast_id", "provider_podcast_id"),
    )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, title={self.title!r})>"


class Favorite(Base):
    """Favorited episode, unique by its "feedUrl::audioUrl" key."""

    __tablename__ = "favorites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    key: Mapped[str] = mapped_column(String(4200), unique=True, nullable=False)
    feed_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    audio_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    episode_title: Mapped[str] = mapped_column(String(512), nullable=False)
    podcast_title: Mapped[str] = mapped_column(String(512), nullable=False)
    artwork_url: Mapped[str] = mapped_column(String(2048), default="")
    added_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)

    description: Mapped[Optional[str]] = mapped_column(Text)
    pub_date: Mapped[Optional[str]] = mapped_column(String(64))
    duration: Mapped[Optional[float]] = mapped_column(Float)
    episode_artwork_url: Mapped[Optional[str]] = mapped_column(String(2048))
    episode_id: Mapped[Optional[str]] = mapped_column(String(2048))
    provider_episode_id: Mapped[Optional[str]] = mapped_column(String(64))

    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_favorites_added_at", "added_at"),
        Index("ix_favorites_episode_id", "episode_id"),
    )

    def __repr__(self) -> str:
        return f"<Favorite(id={self.id}, key={self.key!r})>"


class Setting(Base):
    """Key-value application setting."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(256), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)

    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    def __repr__(self) -> str:
        return f"<Setting(key={self.key!r})>"


class Folder(Base):
    """User folder for locally imported tracks. Pinned when `pinned_at` is set."""

    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)
    pinned_at: Mapped[Optional[int]] = mapped_column(BigInteger)

    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_folders_name", "name"),
        Index("ix_folders_created_at", "created_at"),
    )

    @property
    def is_pinned(self) -> bool:
        return self.pinned_at is not None

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name={self.name!r})>"


class LocalTrack(Base):
    """Locally imported audio file. A null `folder_id` places it at the root."""

    __tablename__ = "local_tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    folder_id: Mapped[Optional[str]] = mapped_column(String(36))
    name: Mapped[str] = mapped_column(String(1024), nullable=False)
    audio_id: Mapped[str] = mapped_column(String(36), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)
    active_subtitle_id: Mapped[Optional[str]] = mapped_column(String(36))
    artwork_id: Mapped[Optional[str]] = mapped_column(String(36))

    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_local_tracks_folder_id", "folder_id"),
        Index("ix_local_tracks_created_at", "created_at"),
        Index("ix_local_tracks_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<LocalTrack(id={self.id}, name={self.name!r})>"


class LocalSubtitle(Base):
    """Caption file attached to a local track."""

    __tablename__ = "local_subtitles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    track_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(1024), nullable=False)
    subtitle_id: Mapped[str] = mapped_column(String(36), nullable=False)

    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    __table_args__ = (Index("ix_local_subtitles_track_id", "track_id"),)

    def __repr__(self) -> str:
        return f"<LocalSubtitle(id={self.id}, track_id={self.track_id})>"


# Collections included in a vault snapshot, in export order.
METADATA_MODELS = (
    Folder,
    LocalTrack,
    LocalSubtitle,
    Subscription,
    Favorite,
    PlaybackSession,
    Setting,
)

BLOB_MODELS = (AudioBlob, SubtitleBlob)
