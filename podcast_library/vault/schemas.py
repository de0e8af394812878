"""Pydantic models describing the vault snapshot format.

Record fields are camelCase on the wire and snake_case in Python. Unknown
record attributes are kept (``extra="allow"``) so that snapshots written by a
newer client survive an import/export cycle.
"""

import json
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from podcast_library.errors import MalformedSnapshot

VAULT_VERSION = 1


class VaultRecord(BaseModel):
    """Base for every record stored in a vault collection."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @property
    def extra_attributes(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class FolderRecord(VaultRecord):
    id: str
    name: str
    created_at: int
    pinned_at: Optional[int] = None


class LocalTrackRecord(VaultRecord):
    id: str
    folder_id: Optional[str] = None
    name: str
    audio_id: str
    size_bytes: int
    duration_seconds: Optional[float] = None
    created_at: int
    active_subtitle_id: Optional[str] = None
    artwork_id: Optional[str] = None


class LocalSubtitleRecord(VaultRecord):
    id: str
    track_id: str
    name: str
    subtitle_id: str


class SubscriptionRecord(VaultRecord):
    id: str
    feed_url: str
    title: str
    author: str
    artwork_url: str
    added_at: int
    provider_podcast_id: Optional[str] = None


class FavoriteRecord(VaultRecord):
    id: str
    key: str
    feed_url: str
    audio_url: str
    episode_title: str
    podcast_title: str
    artwork_url: str
    added_at: int
    description: Optional[str] = None
    pub_date: Optional[str] = None
    duration: Optional[float] = None
    episode_artwork_url: Optional[str] = None
    episode_id: Optional[str] = None
    provider_episode_id: Optional[str] = None


class PlaybackSessionRecord(VaultRecord):
    id: str
    source: Literal["local", "remote"]
    title: str
    created_at: int
    last_played_at: int
    size_bytes: int
    duration: float
    progress: float
    audio_id: Optional[str] = None
    subtitle_id: Optional[str] = None
    has_audio_blob: bool = False
    subtitle_type: Optional[Literal["srt", "vtt"]] = None
    audio_filename: str = ""
    subtitle_filename: str = ""
    audio_url: Optional[str] = None
    local_track_id: Optional[str] = None
    artwork_url: Optional[str] = None
    description: Optional[str] = None
    podcast_title: Optional[str] = None
    podcast_feed_url: Optional[str] = None
    published_at: Optional[int] = None
    episode_id: Optional[str] = None

    @model_validator(mode="after")
    def check_origin(self) -> "PlaybackSessionRecord":
        if self.audio_id and self.local_track_id:
            raise ValueError(
                "session cannot own an audio blob and reference a local track"
            )
        return self


class SettingRecord(VaultRecord):
    key: str
    value: str
    updated_at: int


class VaultData(BaseModel):
    """The seven metadata collections, keyed by their storage names."""

    model_config = ConfigDict(extra="ignore")

    folders: List[FolderRecord]
    local_tracks: List[LocalTrackRecord]
    local_subtitles: List[LocalSubtitleRecord]
    subscriptions: List[SubscriptionRecord]
    favorites: List[FavoriteRecord]
    playback_sessions: List[PlaybackSessionRecord]
    settings: List[SettingRecord]

    @model_validator(mode="after")
    def check_setting_keys(self) -> "VaultData":
        # Settings are keyed by name, so a repeated key cannot be stored
        keys = set()
        for setting in self.settings:
            if setting.key in keys:
                raise ValueError(f"Duplicate setting key: {setting.key}")
            keys.add(setting.key)
        return self


class VaultSnapshot(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: Literal[1]
    exported_at: int
    data: VaultData

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def parse_snapshot(payload: Union[str, bytes, Dict[str, Any], VaultSnapshot]) -> VaultSnapshot:
    """
    Structurally validate a vault payload.

    Parameters:
        payload: A VaultSnapshot, a decoded JSON object, or JSON text.

    Returns:
        VaultSnapshot: The validated snapshot.

    Raises:
        MalformedSnapshot: If the payload is not valid JSON, has an unsupported
            version, or any record is missing a required attribute.
    """
    if isinstance(payload, VaultSnapshot):
        return payload

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise MalformedSnapshot(f"Vault is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedSnapshot("Vault must be a JSON object")

    try:
        return VaultSnapshot.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise MalformedSnapshot(
            f"Invalid vault structure at {location}: {first['msg']}"
        ) from e
