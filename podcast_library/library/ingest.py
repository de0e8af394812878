"""Import local audio and caption files as library tracks.

Audio files become tracks; caption files (.srt, .vtt) whose base name matches
an audio file in the same batch are attached to that track.
"""

import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Iterable, List, Optional

from sqlalchemy import select

from podcast_library.db.models import LocalSubtitle, LocalTrack
from podcast_library.db.repository import (
    LibraryRepositoryInterface,
    build_audio_blob,
    build_subtitle_blob,
)
from podcast_library.errors import NotFound

logger = logging.getLogger(__name__)

SUBTITLE_EXTENSIONS = (".srt", ".vtt")


def resolve_duplicate_name(name: str, existing_names: Iterable[str]) -> str:
    """Return `name`, or `name (N)` with the smallest N >= 2 not already taken.

    Comparison is case-insensitive and ignores surrounding whitespace. The
    counter is always appended to the input name, so "Draft (2)" becomes
    "Draft (2) (2)" rather than "Draft (3)".
    """
    base = name.strip()
    taken = {existing.strip().lower() for existing in existing_names}

    final_name = base
    counter = 2
    while final_name.lower() in taken:
        final_name = f"{base} ({counter})"
        counter += 1
    return final_name


@dataclass
class IngestFile:
    """A file handed to the ingestor: its name, raw bytes and MIME type."""

    filename: str
    data: bytes
    mime_type: str = ""
    duration_seconds: Optional[float] = None

    @property
    def stem(self) -> str:
        return PurePath(self.filename).stem

    @property
    def is_audio(self) -> bool:
        return self.mime_type.startswith("audio/")

    @property
    def is_subtitle(self) -> bool:
        return PurePath(self.filename).suffix.lower() in SUBTITLE_EXTENSIONS

    def read_text(self) -> str:
        return self.data.decode("utf-8-sig", errors="replace")


@dataclass
class IngestResult:
    created_track_ids: List[str] = field(default_factory=list)
    attached_subtitle_count: int = 0


class LocalFileIngestor:
    """Creates tracks, audio blobs and track subtitles from uploaded files."""

    def __init__(self, repository: LibraryRepositoryInterface):
        self.repository = repository

    def ingest(
        self, files: List[IngestFile], folder_id: Optional[str] = None
    ) -> IngestResult:
        """
        Ingest a batch of files into a folder (or the root when `folder_id` is None).

        Track names are file stems made unique within the folder. Each caption
        file is attached to at most one track: the first audio file whose stem
        equals the caption's stem or prefixes its filename.

        Raises:
            NotFound: If `folder_id` is given and the folder does not exist.
        """
        audio_files = [f for f in files if f.is_audio]
        subtitle_files = [f for f in files if f.is_subtitle]
        used_subtitles = set()
        result = IngestResult()

        if folder_id is not None and self.repository.get_folder(folder_id) is None:
            raise NotFound("Folder", folder_id)

        existing_names = [
            track.name for track in self.repository.list_tracks_in_folder(folder_id)
        ]

        for audio_file in audio_files:
            name = resolve_duplicate_name(audio_file.stem, existing_names)
            existing_names.append(name)

            matching = [
                (index, sub)
                for index, sub in enumerate(subtitle_files)
                if index not in used_subtitles
                and (sub.stem == audio_file.stem or sub.filename.startswith(audio_file.stem))
            ]

            with self.repository.transaction() as session:
                audio_blob = build_audio_blob(
                    audio_file.data, audio_file.filename, audio_file.mime_type
                )
                session.add(audio_blob)
                session.flush()

                track = LocalTrack(
                    folder_id=folder_id,
                    name=name,
                    audio_id=audio_blob.id,
                    size_bytes=len(audio_file.data),
                    duration_seconds=audio_file.duration_seconds,
                )
                session.add(track)
                session.flush()

                subtitle_names: List[str] = []
                for index, sub in matching:
                    sub_name = resolve_duplicate_name(sub.filename, subtitle_names)
                    subtitle_names.append(sub_name)
                    self._add_track_subtitle(session, track.id, sub_name, sub.read_text())
                    used_subtitles.add(index)

            result.created_track_ids.append(track.id)
            result.attached_subtitle_count += len(matching)
            logger.info(f"Added track: {name} ({len(matching)} subtitles)")

        return result

    def attach_subtitle(self, track_id: str, filename: str, content: str) -> LocalSubtitle:
        """
        Attach a caption file to an existing track.

        Raises:
            NotFound: If the track does not exist.
        """
        with self.repository.transaction() as session:
            if session.get(LocalTrack, track_id) is None:
                raise NotFound("LocalTrack", track_id)
            existing_names = session.scalars(
                select(LocalSubtitle.name).where(LocalSubtitle.track_id == track_id)
            ).all()
            name = resolve_duplicate_name(filename, existing_names)
            track_subtitle = self._add_track_subtitle(session, track_id, name, content)
        logger.debug(f"Attached subtitle {name} to track {track_id}")
        return track_subtitle

    @staticmethod
    def _add_track_subtitle(session, track_id: str, name: str, content: str) -> LocalSubtitle:
        subtitle_blob = build_subtitle_blob(content, name)
        session.add(subtitle_blob)
        session.flush()
        track_subtitle = LocalSubtitle(
            track_id=track_id, name=name, subtitle_id=subtitle_blob.id
        )
        session.add(track_subtitle)
        session.flush()
        return track_subtitle
