"""Repository pattern implementation for local library persistence.

Provides an abstract interface and SQLAlchemy implementation for the entity
store. Every write runs in its own transaction; composite operations (cascade
deletes, vault import, file ingest) share one unit through `transaction()`.
All writes are last-write-wins.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import PurePath
from typing import Dict, Iterator, List, Optional

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from podcast_library.errors import (
    InvalidFieldValue,
    InvalidSessionOrigin,
    NotFound,
    StorageUnavailable,
)
from podcast_library.utils.time_utils import now_ms

from .models import (
    BLOB_MODELS,
    METADATA_MODELS,
    SESSION_SOURCES,
    SUBTITLE_FORMATS,
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

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 200
SEARCH_SCAN_BATCH = 100


def _scan_for_substring(session: Session, stmt, attribute: str, query: str, limit: int) -> list:
    """
    Walk `stmt` in its index order, keeping rows whose `attribute` contains `query`.

    Matching uses Unicode case folding in Python, since SQLite's lower() only
    folds ASCII. The scan stops as soon as `limit` matches are collected.
    """
    needle = query.casefold()
    matches = []
    for row in session.scalars(stmt.execution_options(yield_per=SEARCH_SCAN_BATCH)):
        if needle in (getattr(row, attribute) or "").casefold():
            matches.append(row)
            if len(matches) >= limit:
                break
    return matches


def make_favorite_key(feed_url: str, audio_url: str) -> str:
    """Build the composite key that identifies a favorite."""
    return f"{feed_url}::{audio_url}"


def subtitle_format_for(filename: str) -> str:
    """Return "vtt" for .vtt files and "srt" for everything else."""
    return "vtt" if PurePath(filename).suffix.lower() == ".vtt" else "srt"


def build_audio_blob(data: bytes, filename: str, mime_type: str = "") -> AudioBlob:
    """Create an unsaved AudioBlob for the given payload."""
    return AudioBlob(
        data=data,
        size=len(data),
        mime_type=mime_type,
        filename=filename,
        stored_at=now_ms(),
    )


def build_subtitle_blob(content: str, filename: str) -> SubtitleBlob:
    """Create an unsaved SubtitleBlob; size is the UTF-8 byte length."""
    return SubtitleBlob(
        content=content,
        size=len(content.encode("utf-8")),
        filename=filename,
        format=subtitle_format_for(filename),
        stored_at=now_ms(),
    )


def check_session_origin(playback_session: PlaybackSession) -> None:
    """Reject a session that both owns an audio blob and points at a track.

    Raises:
        InvalidSessionOrigin: If `audio_id` and `local_track_id` are both set.
    """
    if playback_session.audio_id and playback_session.local_track_id:
        raise InvalidSessionOrigin(
            f"Session {playback_session.id} cannot own audio blob "
            f"{playback_session.audio_id} and reference track "
            f"{playback_session.local_track_id}"
        )


def validate_playback_session(playback_session: PlaybackSession) -> None:
    """Check a session's enumerated fields and its origin before it is written.

    Raises:
        InvalidFieldValue: If `source` or `subtitle_type` is not a known value.
        InvalidSessionOrigin: If `audio_id` and `local_track_id` are both set.
    """
    # None means the column default applies at flush
    if playback_session.source is not None and playback_session.source not in SESSION_SOURCES:
        raise InvalidFieldValue(
            f"Session source must be one of {SESSION_SOURCES}, got {playback_session.source!r}"
        )
    subtitle_type = playback_session.subtitle_type
    if subtitle_type is not None and subtitle_type not in SUBTITLE_FORMATS:
        raise InvalidFieldValue(
            f"Session subtitle_type must be one of {SUBTITLE_FORMATS}, got {subtitle_type!r}"
        )
    check_session_origin(playback_session)


class LibraryRepositoryInterface(ABC):
    """Abstract interface for local library persistence."""

    @abstractmethod
    def transaction(self):
        """
        Open a single all-or-nothing unit of work.

        Yields a database session; everything written through it is committed
        together when the block exits normally and rolled back if it raises.

        Raises:
            StorageUnavailable: If the database fails while the unit is open.
        """
        pass

    # --- Playback Session Operations ---

    @abstractmethod
    def create_playback_session(self, **fields) -> PlaybackSession:
        """
        Create and persist a new playback session.

        Parameters:
            **fields: PlaybackSession attributes; `id`, timestamps and counters default when omitted.

        Returns:
            PlaybackSession: The persisted session.

        Raises:
            InvalidSessionOrigin: If both `audio_id` and `local_track_id` are supplied.
            InvalidFieldValue: If `source` or `subtitle_type` is not a known value.
        """
        pass

    @abstractmethod
    def upsert_playback_session(
        self, session_id: Optional[str] = None, **fields
    ) -> PlaybackSession:
        """
        Merge `fields` into an existing session or create it when missing.

        Attributes not supplied keep their stored values, so progress, duration and
        last_played_at survive a partial upsert.
        """
        pass

    @abstractmethod
    def get_playback_session(self, session_id: str) -> Optional[PlaybackSession]:
        """
        Retrieve a playback session by its identifier.

        Returns:
            PlaybackSession if found, `None` otherwise.
        """
        pass

    @abstractmethod
    def update_playback_session(self, session_id: str, **fields) -> PlaybackSession:
        """
        Update attributes of an existing playback session.

        `last_played_at` is refreshed to the current time unless it is supplied.

        Raises:
            NotFound: If no session with `session_id` exists.
            InvalidSessionOrigin: If the update leaves both an owned audio blob and a track reference.
            InvalidFieldValue: If `source` or `subtitle_type` is not a known value.
        """
        pass

    @abstractmethod
    def list_playback_sessions(self, limit: Optional[int] = None) -> List[PlaybackSession]:
        """Return sessions ordered by last_played_at, most recent first."""
        pass

    @abstractmethod
    def get_last_playback_session(self) -> Optional[PlaybackSession]:
        """Return the most recently played session, if any."""
        pass

    @abstractmethod
    def find_last_session_by_audio_url(self, audio_url: str) -> Optional[PlaybackSession]:
        """Return the most recently played session for a remote audio URL."""
        pass

    @abstractmethod
    def find_last_session_by_track_id(self, track_id: str) -> Optional[PlaybackSession]:
        """Return the most recently played session for a local track."""
        pass

    @abstractmethod
    def search_playback_sessions_by_title(
        self, query: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[PlaybackSession]:
        """
        Case-insensitive substring search on session titles.

        Results keep last_played_at order (most recent first) and are capped at `limit`.
        An empty query returns an empty list.
        """
        pass

    @abstractmethod
    def search_sessions_by_audio_urls(self, audio_urls: List[str]) -> List[PlaybackSession]:
        """Return sessions whose audio_url is any of `audio_urls`."""
        pass

    @abstractmethod
    def count_playback_sessions(self) -> int:
        """Return the number of stored sessions."""
        pass

    @abstractmethod
    def count_sessions_played_before(self, cutoff: int) -> int:
        """Count sessions with last_played_at strictly below `cutoff`."""
        pass

    @abstractmethod
    def list_session_ids_played_before(
        self, cutoff: int, limit: Optional[int] = None
    ) -> List[str]:
        """Return ids of sessions with last_played_at strictly below `cutoff`, oldest first."""
        pass

    @abstractmethod
    def get_nth_most_recent_played_at(self, n: int) -> Optional[int]:
        """
        Return the last_played_at of the n-th most recently played session.

        Returns:
            The timestamp, or `None` when fewer than `n` sessions exist.
        """
        pass

    # --- Blob Operations ---

    @abstractmethod
    def add_audio_blob(self, data: bytes, filename: str, mime_type: str = "") -> AudioBlob:
        """Store raw audio bytes and return the persisted blob."""
        pass

    @abstractmethod
    def get_audio_blob(self, blob_id: str) -> Optional[AudioBlob]:
        pass

    @abstractmethod
    def list_audio_blobs(self) -> List[AudioBlob]:
        """Return audio blobs, most recently stored first."""
        pass

    @abstractmethod
    def delete_audio_blob(self, blob_id: str) -> bool:
        pass

    @abstractmethod
    def add_subtitle_blob(self, content: str, filename: str) -> SubtitleBlob:
        """Store caption text; the format is derived from the filename extension."""
        pass

    @abstractmethod
    def get_subtitle_blob(self, blob_id: str) -> Optional[SubtitleBlob]:
        pass

    @abstractmethod
    def list_subtitle_blobs(self) -> List[SubtitleBlob]:
        pass

    @abstractmethod
    def delete_subtitle_blob(self, blob_id: str) -> bool:
        pass

    @abstractmethod
    def get_storage_stats(self) -> Dict[str, int]:
        """
        Summarize stored content.

        Returns:
            Dict with `sessions`, `audio_blobs`, `audio_blobs_size`, `subtitles`,
            `subtitles_size` and `total_size` (bytes).
        """
        pass

    # --- Subscription Operations ---

    @abstractmethod
    def add_subscription(
        self,
        feed_url: str,
        title: str,
        author: str = "",
        artwork_url: str = "",
        provider_podcast_id: Optional[str] = None,
    ) -> Subscription:
        """
        Subscribe to a feed.

        Idempotent on `feed_url`: an existing subscription is returned unchanged.
        """
        pass

    @abstractmethod
    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    def get_subscription_by_feed_url(self, feed_url: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    def remove_subscription_by_feed_url(self, feed_url: str) -> bool:
        pass

    @abstractmethod
    def list_subscriptions(self) -> List[Subscription]:
        """Return subscriptions, most recently added first."""
        pass

    @abstractmethod
    def count_subscriptions(self) -> int:
        pass

    # --- Favorite Operations ---

    @abstractmethod
    def add_favorite(
        self,
        feed_url: str,
        audio_url: str,
        episode_title: str,
        podcast_title: str,
        artwork_url: str = "",
        **kwargs,
    ) -> Favorite:
        """
        Favorite an episode.

        Idempotent on the (feed_url, audio_url) key: an existing favorite is returned unchanged.
        """
        pass

    @abstractmethod
    def get_favorite_by_key(self, key: str) -> Optional[Favorite]:
        pass

    @abstractmethod
    def remove_favorite_by_key(self, key: str) -> bool:
        pass

    @abstractmethod
    def list_favorites(self) -> List[Favorite]:
        """Return favorites, most recently added first."""
        pass

    # --- Setting Operations ---

    @abstractmethod
    def get_setting(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_setting(self, key: str, value: str) -> Setting:
        """Insert or replace a setting, refreshing its updated_at."""
        pass

    @abstractmethod
    def delete_setting(self, key: str) -> bool:
        pass

    @abstractmethod
    def list_settings(self) -> List[Setting]:
        pass

    # --- Folder Operations ---

    @abstractmethod
    def create_folder(self, name: str) -> Folder:
        pass

    @abstractmethod
    def get_folder(self, folder_id: str) -> Optional[Folder]:
        pass

    @abstractmethod
    def list_folders(self) -> List[Folder]:
        """Return pinned folders first (most recently pinned first), then the rest by creation time."""
        pass

    @abstractmethod
    def update_folder(self, folder_id: str, **fields) -> Folder:
        """
        Rename or pin/unpin a folder.

        Raises:
            NotFound: If no folder with `folder_id` exists.
        """
        pass

    @abstractmethod
    def count_tracks_in_folder(self, folder_id: str) -> int:
        pass

    # --- Track Operations ---

    @abstractmethod
    def create_track(
        self,
        name: str,
        audio_id: str,
        size_bytes: int,
        folder_id: Optional[str] = None,
        **kwargs,
    ) -> LocalTrack:
        """
        Create a track in `folder_id`, or at the root when it is `None`.

        Raises:
            NotFound: If `folder_id` is given and no such folder exists.
        """
        pass

    @abstractmethod
    def get_track(self, track_id: str) -> Optional[LocalTrack]:
        pass

    @abstractmethod
    def update_track(self, track_id: str, **fields) -> LocalTrack:
        """
        Rename, move or otherwise update a track.

        Raises:
            NotFound: If no track with `track_id` exists, or the track is moved
                into a folder that does not exist.
        """
        pass

    @abstractmethod
    def list_tracks_in_folder(self, folder_id: Optional[str]) -> List[LocalTrack]:
        """Return the tracks of a folder; `None` lists the root."""
        pass

    @abstractmethod
    def list_tracks(self) -> List[LocalTrack]:
        """Return all tracks, most recently created first."""
        pass

    @abstractmethod
    def search_tracks_by_name(
        self, query: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[LocalTrack]:
        """Case-insensitive substring search on track names, newest first."""
        pass

    # --- Track Subtitle Operations ---

    @abstractmethod
    def create_track_subtitle(
        self, track_id: str, name: str, subtitle_id: str
    ) -> LocalSubtitle:
        """
        Attach an existing subtitle blob to a track.

        Raises:
            NotFound: If no track with `track_id` exists.
        """
        pass

    @abstractmethod
    def get_track_subtitle(self, track_subtitle_id: str) -> Optional[LocalSubtitle]:
        pass

    @abstractmethod
    def list_subtitles_for_track(self, track_id: str) -> List[LocalSubtitle]:
        pass

    # --- Maintenance ---

    @abstractmethod
    def clear_all_data(self) -> None:
        """Remove every record and blob in a single unit."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Dispose the engine and release database connections."""
        pass


class SQLAlchemyLibraryRepository(LibraryRepositoryInterface):
    """SQLAlchemy-based implementation of the library repository.

    Uses SQLite for on-device storage; any SQLAlchemy URL is accepted.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
        create_tables: bool = False,
    ):
        """
        Initialize the repository and configure its SQLAlchemy engine and session factory.

        Parameters:
            database_url (str): SQLAlchemy-compatible database URL.
            pool_size (int): Connection pool size for non-SQLite databases.
            max_overflow (int): Maximum overflow connections for non-SQLite databases.
            echo (bool): If true, enable SQLAlchemy SQL statement logging.
            create_tables (bool): If true, create missing tables from the ORM metadata
                instead of relying on Alembic migrations.
        """
        self.database_url = database_url

        # SQLite doesn't support connection pooling
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=echo,
            )

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if create_tables:
            Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized: {database_url.split('@')[-1] if '@' in database_url else database_url}")

    def _get_session(self) -> Session:
        """Obtain a new SQLAlchemy session from the repository's session factory."""
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        session = self._get_session()
        try:
            with session.begin():
                yield session
        except DBAPIError as e:
            logger.error(f"Storage write failed: {e}")
            raise StorageUnavailable(str(e)) from e
        finally:
            session.close()

    # --- Playback Session Operations ---

    def create_playback_session(self, **fields) -> PlaybackSession:
        with self.transaction() as session:
            playback_session = PlaybackSession(**fields)
            validate_playback_session(playback_session)
            session.add(playback_session)
        logger.debug(f"Created playback session: {playback_session.title} ({playback_session.id})")
        return playback_session

    def upsert_playback_session(
        self, session_id: Optional[str] = None, **fields
    ) -> PlaybackSession:
        if session_id:
            with self.transaction() as session:
                existing = session.get(PlaybackSession, session_id)
                if existing:
                    for key, value in fields.items():
                        if key != "id" and hasattr(existing, key):
                            setattr(existing, key, value)
                    validate_playback_session(existing)
                    return existing
            return self.create_playback_session(id=session_id, **fields)
        return self.create_playback_session(**fields)

    def get_playback_session(self, session_id: str) -> Optional[PlaybackSession]:
        with self._get_session() as session:
            return session.get(PlaybackSession, session_id)

    def update_playback_session(self, session_id: str, **fields) -> PlaybackSession:
        with self.transaction() as session:
            playback_session = session.get(PlaybackSession, session_id)
            if playback_session is None:
                raise NotFound("PlaybackSession", session_id)
            for key, value in fields.items():
                if key != "id" and hasattr(playback_session, key):
                    setattr(playback_session, key, value)
            if "last_played_at" not in fields:
                playback_session.last_played_at = now_ms()
            validate_playback_session(playback_session)
        logger.debug(f"Updated playback session {session_id}: {fields.keys()}")
        return playback_session

    def list_playback_sessions(self, limit: Optional[int] = None) -> List[PlaybackSession]:
        with self._get_session() as session:
            stmt = select(PlaybackSession).order_by(PlaybackSession.last_played_at.desc())
            if limit:
                stmt = stmt.limit(limit)
            return list(session.scalars(stmt).all())

    def get_last_playback_session(self) -> Optional[PlaybackSession]:
        with self._get_session() as session:
            stmt = (
                select(PlaybackSession)
                .order_by(PlaybackSession.last_played_at.desc())
                .limit(1)
            )
            return session.scalar(stmt)

    def find_last_session_by_audio_url(self, audio_url: str) -> Optional[PlaybackSession]:
        with self._get_session() as session:
            stmt = (
                select(PlaybackSession)
                .where(PlaybackSession.audio_url == audio_url)
                .order_by(PlaybackSession.last_played_at.desc())
                .limit(1)
            )
            return session.scalar(stmt)

    def find_last_session_by_track_id(self, track_id: str) -> Optional[PlaybackSession]:
        with self._get_session() as session:
            stmt = (
                select(PlaybackSession)
                .where(PlaybackSession.local_track_id == track_id)
                .order_by(PlaybackSession.last_played_at.desc())
                .limit(1)
            )
            return session.scalar(stmt)

    def search_playback_sessions_by_title(
        self, query: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[PlaybackSession]:
        """
        Search session titles without a full-text index.

        Walks the last_played_at index newest first and keeps rows whose
        case-folded title contains the case-folded query, stopping after
        `limit` matches.
        """
        if not query or limit < 1:
            return []
        with self._get_session() as session:
            stmt = select(PlaybackSession).order_by(PlaybackSession.last_played_at.desc())
            return _scan_for_substring(session, stmt, "title", query, limit)

    def search_sessions_by_audio_urls(self, audio_urls: List[str]) -> List[PlaybackSession]:
        if not audio_urls:
            return []
        with self._get_session() as session:
            stmt = (
                select(PlaybackSession)
                .where(PlaybackSession.audio_url.in_(audio_urls))
                .order_by(PlaybackSession.last_played_at.desc())
            )
            return list(session.scalars(stmt).all())

    def count_playback_sessions(self) -> int:
        with self._get_session() as session:
            return session.scalar(select(func.count()).select_from(PlaybackSession)) or 0

    def count_sessions_played_before(self, cutoff: int) -> int:
        with self._get_session() as session:
            stmt = (
                select(func.count())
                .select_from(PlaybackSession)
                .where(PlaybackSession.last_played_at < cutoff)
            )
            return session.scalar(stmt) or 0

    def list_session_ids_played_before(
        self, cutoff: int, limit: Optional[int] = None
    ) -> List[str]:
        with self._get_session() as session:
            stmt = (
                select(PlaybackSession.id)
                .where(PlaybackSession.last_played_at < cutoff)
                .order_by(PlaybackSession.last_played_at)
            )
            if limit:
                stmt = stmt.limit(limit)
            return list(session.scalars(stmt).all())

    def get_nth_most_recent_played_at(self, n: int) -> Optional[int]:
        if n < 1:
            raise ValueError(f"n must be >= 1, got {n}")
        with self._get_session() as session:
            stmt = (
                select(PlaybackSession.last_played_at)
                .order_by(PlaybackSession.last_played_at.desc())
                .offset(n - 1)
                .limit(1)
            )
            return session.scalar(stmt)

    # --- Blob Operations ---

    def add_audio_blob(self, data: bytes, filename: str, mime_type: str = "") -> AudioBlob:
        with self.transaction() as session:
            blob = build_audio_blob(data, filename, mime_type)
            session.add(blob)
        logger.debug(f"Stored audio blob {blob.id} ({blob.size} bytes)")
        return blob

    def get_audio_blob(self, blob_id: str) -> Optional[AudioBlob]:
        with self._get_session() as session:
            return session.get(AudioBlob, blob_id)

    def list_audio_blobs(self) -> List[AudioBlob]:
        with self._get_session() as session:
            stmt = select(AudioBlob).order_by(AudioBlob.stored_at.desc())
            return list(session.scalars(stmt).all())

    def delete_audio_blob(self, blob_id: str) -> bool:
        with self.transaction() as session:
            result = session.execute(delete(AudioBlob).where(AudioBlob.id == blob_id))
            return result.rowcount > 0

    def add_subtitle_blob(self, content: str, filename: str) -> SubtitleBlob:
        with self.transaction() as session:
            blob = build_subtitle_blob(content, filename)
            session.add(blob)
        return blob

    def get_subtitle_blob(self, blob_id: str) -> Optional[SubtitleBlob]:
        with self._get_session() as session:
            return session.get(SubtitleBlob, blob_id)

    def list_subtitle_blobs(self) -> List[SubtitleBlob]:
        with self._get_session() as session:
            stmt = select(SubtitleBlob).order_by(SubtitleBlob.stored_at.desc())
            return list(session.scalars(stmt).all())

    def delete_subtitle_blob(self, blob_id: str) -> bool:
        with self.transaction() as session:
            result = session.execute(
                delete(SubtitleBlob).where(SubtitleBlob.id == blob_id)
            )
            return result.rowcount > 0

    def get_storage_stats(self) -> Dict[str, int]:
        with self._get_session() as session:
            sessions = session.scalar(select(func.count()).select_from(PlaybackSession)) or 0
            audio_count, audio_size = session.execute(
                select(func.count(AudioBlob.id), func.coalesce(func.sum(AudioBlob.size), 0))
            ).one()
            subtitle_count, subtitle_size = session.execute(
                select(
                    func.count(SubtitleBlob.id),
                    func.coalesce(func.sum(SubtitleBlob.size), 0),
                )
            ).one()

        return {
            "sessions": sessions,
            "audio_blobs": audio_count,
            "audio_blobs_size": int(audio_size),
            "subtitles": subtitle_count,
            "subtitles_size": int(subtitle_size),
            "total_size": int(audio_size) + int(subtitle_size),
        }

    # --- Subscription Operations ---

    def add_subscription(
        self,
        feed_url: str,
        title: str,
        author: str = "",
        artwork_url: str = "",
        provider_podcast_id: Optional[str] = None,
    ) -> Subscription:
        with self.transaction() as session:
            existing = session.scalar(
                select(Subscription).where(Subscription.feed_url == feed_url)
            )
            if existing:
                return existing
            subscription = Subscription(
                feed_url=feed_url,
                title=title,
                author=author,
                artwork_url=artwork_url,
                provider_podcast_id=provider_podcast_id,
            )
            session.add(subscription)
        logger.info(f"Subscribed: {title} ({feed_url})")
        return subscription

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        with self._get_session() as session:
            return session.get(Subscription, subscription_id)

    def get_subscription_by_feed_url(self, feed_url: str) -> Optional[Subscription]:
        with self._get_session() as session:
            stmt = select(Subscription).where(Subscription.feed_url == feed_url)
            return session.scalar(stmt)

    def remove_subscription_by_feed_url(self, feed_url: str) -> bool:
        with self.transaction() as session:
            result = session.execute(
                delete(Subscription).where(Subscription.feed_url == feed_url)
            )
            removed = result.rowcount > 0
        if removed:
            logger.info(f"Unsubscribed: {feed_url}")
        return removed

    def list_subscriptions(self) -> List[Subscription]:
        with self._get_session() as session:
            stmt = select(Subscription).order_by(Subscription.added_at.desc())
            return list(session.scalars(stmt).all())

    def count_subscriptions(self) -> int:
        with self._get_session() as session:
            return session.scalar(select(func.count()).select_from(Subscription)) or 0

    # --- Favorite Operations ---

    def add_favorite(
        self,
        feed_url: str,
        audio_url: str,
        episode_title: str,
        podcast_title: str,
        artwork_url: str = "",
        **kwargs,
    ) -> Favorite:
        key = make_favorite_key(feed_url, audio_url)
        with self.transaction() as session:
            existing = session.scalar(select(Favorite).where(Favorite.key == key))
            if existing:
                return existing
            favorite = Favorite(
                key=key,
                feed_url=feed_url,
                audio_url=audio_url,
                episode_title=episode_title,
                podcast_title=podcast_title,
                artwork_url=artwork_url,
                **kwargs,
            )
            session.add(favorite)
        logger.debug(f"Added favorite: {episode_title} ({key})")
        return favorite

    def get_favorite_by_key(self, key: str) -> Optional[Favorite]:
        with self._get_session() as session:
            return session.scalar(select(Favorite).where(Favorite.key == key))

    def remove_favorite_by_key(self, key: str) -> bool:
        with self.transaction() as session:
            result = session.execute(delete(Favorite).where(Favorite.key == key))
            return result.rowcount > 0

    def list_favorites(self) -> List[Favorite]:
        with self._get_session() as session:
            stmt = select(Favorite).order_by(Favorite.added_at.desc())
            return list(session.scalars(stmt).all())

    # --- Setting Operations ---

    def get_setting(self, key: str) -> Optional[str]:
        with self._get_session() as session:
            setting = session.get(Setting, key)
            return setting.value if setting else None

    def set_setting(self, key: str, value: str) -> Setting:
        with self.transaction() as session:
            setting = session.get(Setting, key)
            if setting:
                setting.value = value
                setting.updated_at = now_ms()
            else:
                setting = Setting(key=key, value=value, updated_at=now_ms())
                session.add(setting)
        return setting

    def delete_setting(self, key: str) -> bool:
        with self.transaction() as session:
            result = session.execute(delete(Setting).where(Setting.key == key))
            return result.rowcount > 0

    def list_settings(self) -> List[Setting]:
        with self._get_session() as session:
            return list(session.scalars(select(Setting).order_by(Setting.key)).all())

    # --- Folder Operations ---

    def create_folder(self, name: str) -> Folder:
        with self.transaction() as session:
            folder = Folder(name=name)
            session.add(folder)
        logger.info(f"Created folder: {name} ({folder.id})")
        return folder

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        with self._get_session() as session:
            return session.get(Folder, folder_id)

    def list_folders(self) -> List[Folder]:
        with self._get_session() as session:
            stmt = select(Folder).order_by(Folder.created_at)
            folders = list(session.scalars(stmt).all())
        # sorted() is stable, so unpinned folders keep creation order
        return sorted(
            folders,
            key=lambda f: (f.pinned_at is None, -(f.pinned_at or 0)),
        )

    def update_folder(self, folder_id: str, **fields) -> Folder:
        with self.transaction() as session:
            folder = session.get(Folder, folder_id)
            if folder is None:
                raise NotFound("Folder", folder_id)
            for key, value in fields.items():
                if key != "id" and hasattr(folder, key):
                    setattr(folder, key, value)
        logger.debug(f"Updated folder {folder_id}: {fields.keys()}")
        return folder

    def count_tracks_in_folder(self, folder_id: str) -> int:
        with self._get_session() as session:
            stmt = (
                select(func.count())
                .select_from(LocalTrack)
                .where(LocalTrack.folder_id == folder_id)
            )
            return session.scalar(stmt) or 0

    # --- Track Operations ---

    def create_track(
        self,
        name: str,
        audio_id: str,
        size_bytes: int,
        folder_id: Optional[str] = None,
        **kwargs,
    ) -> LocalTrack:
        with self.transaction() as session:
            if folder_id is not None and session.get(Folder, folder_id) is None:
                raise NotFound("Folder", folder_id)
            track = LocalTrack(
                name=name,
                audio_id=audio_id,
                size_bytes=size_bytes,
                folder_id=folder_id,
                **kwargs,
            )
            session.add(track)
        logger.debug(f"Created track: {name} ({track.id})")
        return track

    def get_track(self, track_id: str) -> Optional[LocalTrack]:
        with self._get_session() as session:
            return session.get(LocalTrack, track_id)

    def update_track(self, track_id: str, **fields) -> LocalTrack:
        with self.transaction() as session:
            track = session.get(LocalTrack, track_id)
            if track is None:
                raise NotFound("LocalTrack", track_id)
            folder_id = fields.get("folder_id")
            if folder_id is not None and session.get(Folder, folder_id) is None:
                raise NotFound("Folder", folder_id)
            for key, value in fields.items():
                if key != "id" and hasattr(track, key):
                    setattr(track, key, value)
        logger.debug(f"Updated track {track_id}: {fields.keys()}")
        return track

    def list_tracks_in_folder(self, folder_id: Optional[str]) -> List[LocalTrack]:
        with self._get_session() as session:
            stmt = select(LocalTrack)
            if folder_id is None:
                stmt = stmt.where(LocalTrack.folder_id.is_(None))
            else:
                stmt = stmt.where(LocalTrack.folder_id == folder_id)
            stmt = stmt.order_by(LocalTrack.created_at)
            return list(session.scalars(stmt).all())

    def list_tracks(self) -> List[LocalTrack]:
        with self._get_session() as session:
            stmt = select(LocalTrack).order_by(LocalTrack.created_at.desc())
            return list(session.scalars(stmt).all())

    def search_tracks_by_name(
        self, query: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[LocalTrack]:
        if not query or limit < 1:
            return []
        with self._get_session() as session:
            stmt = select(LocalTrack).order_by(LocalTrack.created_at.desc())
            return _scan_for_substring(session, stmt, "name", query, limit)

    # --- Track Subtitle Operations ---

    def create_track_subtitle(
        self, track_id: str, name: str, subtitle_id: str
    ) -> LocalSubtitle:
        with self.transaction() as session:
            if session.get(LocalTrack, track_id) is None:
                raise NotFound("LocalTrack", track_id)
            track_subtitle = LocalSubtitle(
                track_id=track_id, name=name, subtitle_id=subtitle_id
            )
            session.add(track_subtitle)
        return track_subtitle

    def get_track_subtitle(self, track_subtitle_id: str) -> Optional[LocalSubtitle]:
        with self._get_session() as session:
            return session.get(LocalSubtitle, track_subtitle_id)

    def list_subtitles_for_track(self, track_id: str) -> List[LocalSubtitle]:
        with self._get_session() as session:
            stmt = select(LocalSubtitle).where(LocalSubtitle.track_id == track_id)
            return list(session.scalars(stmt).all())

    # --- Maintenance ---

    def clear_all_data(self) -> None:
        logger.info("Clearing all data...")
        with self.transaction() as session:
            for model in METADATA_MODELS + BLOB_MODELS:
                session.execute(delete(model))
        logger.info("All stores cleared")

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Database connection closed")
