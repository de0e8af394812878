"""Cascading deletion for the library reference graph.

Deletions are planned first by walking the dependency graph (folder -> tracks
-> track subtitles -> blobs), then applied child before parent inside a single
transaction, so a failure part way through leaves the store unchanged.
Sessions that played a deleted track are kept, with their track reference
cleared in the same transaction.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Type

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from podcast_library.db.models import (
    AudioBlob,
    Base,
    Folder,
    LocalSubtitle,
    LocalTrack,
    PlaybackSession,
    SubtitleBlob,
)
from podcast_library.db.repository import LibraryRepositoryInterface

logger = logging.getLogger(__name__)


@dataclass
class DeletionPlan:
    """Ordered deletions; every child appears before its parent.

    Attributes:
        steps: (model, primary key) pairs in the order they will be deleted.
    """

    steps: List[Tuple[Type[Base], str]] = field(default_factory=list)

    def add(self, model: Type[Base], key: Optional[str]) -> None:
        if key:
            self.steps.append((model, key))

    def extend(self, other: "DeletionPlan") -> None:
        self.steps.extend(other.steps)

    def ids_for(self, model: Type[Base]) -> List[str]:
        return [key for step_model, key in self.steps if step_model is model]

    def __len__(self) -> int:
        return len(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)


class CascadeDeleter:
    """Removes parents together with their dependents and exclusively owned blobs."""

    def __init__(self, repository: LibraryRepositoryInterface):
        self.repository = repository

    # --- Planning ---

    def _plan_track(self, session: Session, track_id: str) -> DeletionPlan:
        plan = DeletionPlan()
        track = session.get(LocalTrack, track_id)
        if track is None:
            return plan

        subtitles = session.scalars(
            select(LocalSubtitle).where(LocalSubtitle.track_id == track_id)
        ).all()
        for subtitle in subtitles:
            plan.add(SubtitleBlob, subtitle.subtitle_id)
            plan.add(LocalSubtitle, subtitle.id)
        plan.add(AudioBlob, track.audio_id)
        plan.add(LocalTrack, track.id)
        return plan

    def _plan_folder(self, session: Session, folder_id: str) -> DeletionPlan:
        plan = DeletionPlan()
        folder = session.get(Folder, folder_id)
        if folder is None:
            return plan

        track_ids = session.scalars(
            select(LocalTrack.id).where(LocalTrack.folder_id == folder_id)
        ).all()
        for track_id in track_ids:
            plan.extend(self._plan_track(session, track_id))
        plan.add(Folder, folder.id)
        return plan

    def _plan_session(self, session: Session, session_id: str) -> DeletionPlan:
        plan = DeletionPlan()
        playback_session = session.get(PlaybackSession, session_id)
        if playback_session is None:
            return plan

        # A track's audio belongs to the track, not to sessions pointing at it
        if playback_session.origin == "blob":
            plan.add(AudioBlob, playback_session.audio_id)
        plan.add(SubtitleBlob, playback_session.subtitle_id)
        plan.add(PlaybackSession, playback_session.id)
        return plan

    def plan_folder_deletion(self, folder_id: str) -> DeletionPlan:
        """Plan removal of a folder, its tracks, their subtitles and all owned blobs."""
        with self.repository.transaction() as session:
            return self._plan_folder(session, folder_id)

    def plan_track_deletion(self, track_id: str) -> DeletionPlan:
        """Plan removal of a track, its subtitles and their blobs."""
        with self.repository.transaction() as session:
            return self._plan_track(session, track_id)

    def plan_session_deletion(self, session_id: str) -> DeletionPlan:
        """Plan removal of a session and the blobs it owns directly."""
        with self.repository.transaction() as session:
            return self._plan_session(session, session_id)

    # --- Applying ---

    @staticmethod
    def _apply(session: Session, plan: DeletionPlan) -> int:
        removed = 0
        for model, key in plan.steps:
            primary_key = model.__mapper__.primary_key[0]
            result = session.execute(delete(model).where(primary_key == key))
            removed += result.rowcount
        return removed

    @staticmethod
    def _detach_sessions(session: Session, track_ids: List[str]) -> int:
        """Clear local_track_id on sessions pointing at tracks about to be deleted."""
        if not track_ids:
            return 0
        result = session.execute(
            update(PlaybackSession)
            .where(PlaybackSession.local_track_id.in_(track_ids))
            .values(local_track_id=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_folder(self, folder_id: str) -> int:
        """
        Delete a folder and everything beneath it.

        Returns:
            Number of records and blobs removed; 0 if the folder does not exist.
        """
        with self.repository.transaction() as session:
            plan = self._plan_folder(session, folder_id)
            self._detach_sessions(session, plan.ids_for(LocalTrack))
            removed = self._apply(session, plan)
        if removed:
            logger.info(
                f"Deleted folder {folder_id} with "
                f"{len(plan.ids_for(LocalTrack))} tracks ({removed} records)"
            )
        return removed

    def delete_track(self, track_id: str) -> int:
        """Delete a track, its subtitles and its audio. Returns records removed."""
        with self.repository.transaction() as session:
            plan = self._plan_track(session, track_id)
            self._detach_sessions(session, plan.ids_for(LocalTrack))
            removed = self._apply(session, plan)
        if removed:
            logger.info(f"Deleted track {track_id} ({removed} records)")
        return removed

    def delete_session(self, session_id: str) -> int:
        """Delete one playback session and the blobs it owns. Returns records removed."""
        return self.delete_sessions([session_id])

    def delete_sessions(self, session_ids: Iterable[str]) -> int:
        """Delete several playback sessions in one transaction. Returns records removed."""
        with self.repository.transaction() as session:
            plan = DeletionPlan()
            for session_id in session_ids:
                plan.extend(self._plan_session(session, session_id))
            removed = self._apply(session, plan)
        logger.debug(
            f"Deleted {len(plan.ids_for(PlaybackSession))} sessions ({removed} records)"
        )
        return removed

    def delete_track_subtitle(self, track_subtitle_id: str) -> int:
        """Delete one track subtitle and its blob, unsetting it as the track's active subtitle."""
        with self.repository.transaction() as session:
            track_subtitle = session.get(LocalSubtitle, track_subtitle_id)
            if track_subtitle is None:
                return 0
            plan = DeletionPlan()
            plan.add(SubtitleBlob, track_subtitle.subtitle_id)
            plan.add(LocalSubtitle, track_subtitle.id)
            session.execute(
                update(LocalTrack)
                .where(LocalTrack.id == track_subtitle.track_id)
                .where(LocalTrack.active_subtitle_id == track_subtitle.id)
                .values(active_subtitle_id=None)
            )
            return self._apply(session, plan)

    # --- Soft cascades ---

    def clear_all_audio_blobs(self) -> int:
        """
        Reclaim space used by cached session audio.

        Deletes every audio blob not owned by a track, then clears the audio
        reference on every session that had one. Session metadata is kept.

        Returns:
            Number of audio blobs deleted.
        """
        with self.repository.transaction() as session:
            track_audio = select(LocalTrack.audio_id)
            result = session.execute(
                delete(AudioBlob)
                .where(AudioBlob.id.not_in(track_audio))
                .execution_options(synchronize_session=False)
            )
            session.execute(
                update(PlaybackSession)
                .where(PlaybackSession.audio_id.is_not(None))
                .values(audio_id=None, has_audio_blob=False)
                .execution_options(synchronize_session=False)
            )
            removed = result.rowcount
        logger.info(f"Cleared {removed} cached audio blobs")
        return removed

    def clear_session_cache(self, session_id: str) -> bool:
        """Drop one session's owned audio blob and mark it as not cached."""
        with self.repository.transaction() as session:
            playback_session = session.get(PlaybackSession, session_id)
            if playback_session is None or playback_session.origin != "blob":
                return False
            session.execute(
                delete(AudioBlob).where(AudioBlob.id == playback_session.audio_id)
            )
            playback_session.audio_id = None
            playback_session.has_audio_blob = False
        return True
