"""Vault export and atomic restore.

A vault is a versioned snapshot of every metadata collection. Blob content
(audio bytes, caption text) is never exported and is left untouched by an
import, so restored sessions show as not cached until their media is fetched
again.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

from sqlalchemy import delete, select

from podcast_library.db.models import (
    METADATA_MODELS,
    Base,
    Favorite,
    Folder,
    LocalSubtitle,
    LocalTrack,
    PlaybackSession,
    Setting,
    Subscription,
)
from podcast_library.db.repository import LibraryRepositoryInterface
from podcast_library.errors import IntegrityViolation
from podcast_library.utils.time_utils import now_ms

from .integrity import DEFAULT_MAX_SKEW_MS, verify_vault_integrity
from .schemas import (
    VAULT_VERSION,
    FavoriteRecord,
    FolderRecord,
    LocalSubtitleRecord,
    LocalTrackRecord,
    PlaybackSessionRecord,
    SettingRecord,
    SubscriptionRecord,
    VaultData,
    VaultRecord,
    VaultSnapshot,
    parse_snapshot,
)

logger = logging.getLogger(__name__)

# Vault collection name -> (ORM model, record schema)
COLLECTIONS: Dict[str, tuple] = {
    "folders": (Folder, FolderRecord),
    "local_tracks": (LocalTrack, LocalTrackRecord),
    "local_subtitles": (LocalSubtitle, LocalSubtitleRecord),
    "subscriptions": (Subscription, SubscriptionRecord),
    "favorites": (Favorite, FavoriteRecord),
    "playback_sessions": (PlaybackSession, PlaybackSessionRecord),
    "settings": (Setting, SettingRecord),
}

VaultPayload = Union[str, bytes, Dict[str, Any], VaultSnapshot]


def _record_from_row(row: Base, schema: Type[VaultRecord]) -> VaultRecord:
    values = {name: getattr(row, name) for name in schema.model_fields}
    # Known fields win over stale extras with the same wire name
    extra = {
        key: value
        for key, value in (row.extra or {}).items()
        if key not in schema.model_fields
        and key not in {f.alias for f in schema.model_fields.values()}
    }
    return schema.model_validate({**extra, **values})


def _row_from_record(record: VaultRecord, model: Type[Base]) -> Base:
    values = {name: getattr(record, name) for name in type(record).model_fields}
    return model(**values, extra=record.extra_attributes or None)


class VaultManager:
    """Exports the store to a vault snapshot and restores one atomically."""

    def __init__(
        self,
        repository: LibraryRepositoryInterface,
        clock_skew_ms: int = DEFAULT_MAX_SKEW_MS,
    ):
        self.repository = repository
        self.clock_skew_ms = clock_skew_ms

    def export_snapshot(self) -> VaultSnapshot:
        """Read every metadata collection in one session and build a snapshot."""
        collections: Dict[str, List[VaultRecord]] = {}
        with self.repository.transaction() as session:
            for name, (model, schema) in COLLECTIONS.items():
                rows = session.scalars(select(model)).all()
                collections[name] = [_record_from_row(row, schema) for row in rows]

        snapshot = VaultSnapshot(
            version=VAULT_VERSION,
            exported_at=now_ms(),
            data=VaultData(**collections),
        )
        logger.info(
            "Exported vault: "
            + ", ".join(f"{name}={len(records)}" for name, records in collections.items())
        )
        return snapshot

    def export_dict(self) -> Dict[str, Any]:
        return self.export_snapshot().to_dict()

    def export_json(self, indent: Optional[int] = None) -> str:
        return self.export_snapshot().to_json(indent=indent)

    def validate(self, payload: VaultPayload) -> VaultSnapshot:
        """
        Structurally validate and integrity-check a vault without touching the store.

        Raises:
            MalformedSnapshot: If the payload does not match the vault format.
            IntegrityViolation: If the snapshot fails integrity verification.
        """
        snapshot = parse_snapshot(payload)
        result = verify_vault_integrity(snapshot, max_skew_ms=self.clock_skew_ms)
        if not result.is_valid:
            logger.warning(f"Vault rejected: {result.error}")
            raise IntegrityViolation(result.error, result.code)
        return snapshot

    def import_snapshot(self, payload: VaultPayload) -> VaultSnapshot:
        """
        Replace every metadata collection with the contents of a vault.

        The payload is validated and verified first; the clear and the bulk
        insert then run in one transaction, so a rejected or failed import
        leaves the store as it was. Blob collections are not modified.

        Parameters:
            payload: A VaultSnapshot, a decoded JSON object, or JSON text.

        Returns:
            VaultSnapshot: The snapshot that was imported.

        Raises:
            MalformedSnapshot: If the payload does not match the vault format.
            IntegrityViolation: If the snapshot fails integrity verification.
            StorageUnavailable: If the database fails during the replace.
        """
        snapshot = self.validate(payload)

        with self.repository.transaction() as session:
            for model in METADATA_MODELS:
                session.execute(delete(model))
            for name, (model, _schema) in COLLECTIONS.items():
                records = getattr(snapshot.data, name)
                session.add_all(_row_from_record(record, model) for record in records)

        logger.info(
            f"Vault import successful: {len(snapshot.data.playback_sessions)} sessions, "
            f"{len(snapshot.data.subscriptions)} subscriptions, "
            f"{len(snapshot.data.local_tracks)} tracks"
        )
        return snapshot

    def export_to_file(self, path: Union[str, Path], indent: int = 2) -> VaultSnapshot:
        snapshot = self.export_snapshot()
        Path(path).write_text(snapshot.to_json(indent=indent), encoding="utf-8")
        logger.info(f"Vault written to {path}")
        return snapshot

    def import_from_file(self, path: Union[str, Path]) -> VaultSnapshot:
        return self.import_snapshot(Path(path).read_text(encoding="utf-8"))
