"""Business-level integrity checks for imported data.

`verify_vault_integrity` is the strict gate run before a vault replaces the
store. `verify_subscription_list_integrity` is the lenient check for
subscription-list imports, which deduplicate during merge instead of failing.
Both are pure functions and do not touch the database.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from podcast_library.errors import IntegrityErrorCode
from podcast_library.utils.time_utils import HOUR_MS, now_ms as current_time_ms

from .schemas import VaultSnapshot

DEFAULT_MAX_SKEW_MS = 24 * HOUR_MS


@dataclass(frozen=True)
class IntegrityResult:
    is_valid: bool
    error: Optional[str] = None
    code: Optional[IntegrityErrorCode] = None

    @classmethod
    def valid(cls) -> "IntegrityResult":
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, code: IntegrityErrorCode, error: str) -> "IntegrityResult":
        return cls(is_valid=False, error=error, code=code)


def _timestamps(snapshot: VaultSnapshot) -> Iterable[Optional[int]]:
    data = snapshot.data
    for folder in data.folders:
        yield folder.created_at
        yield folder.pinned_at
    for track in data.local_tracks:
        yield track.created_at
    for subscription in data.subscriptions:
        yield subscription.added_at
    for favorite in data.favorites:
        yield favorite.added_at
    for playback_session in data.playback_sessions:
        yield playback_session.created_at
        yield playback_session.last_played_at
    for setting in data.settings:
        yield setting.updated_at


def verify_vault_integrity(
    snapshot: VaultSnapshot,
    now_ms: Optional[int] = None,
    max_skew_ms: int = DEFAULT_MAX_SKEW_MS,
) -> IntegrityResult:
    """
    Check a structurally valid snapshot for consistency.

    Checks run in order and stop at the first failure:
    1. Ids are unique across folders, tracks, track subtitles, subscriptions,
       favorites and sessions.
    2. Track subtitles, tracks and local sessions reference records that exist.
    3. No creation or update timestamp is later than `now_ms + max_skew_ms`.
    4. No two subscriptions share a feed URL and no two favorites share a key.

    Parameters:
        snapshot (VaultSnapshot): The snapshot to verify.
        now_ms (Optional[int]): Reference time; defaults to the current time.
        max_skew_ms (int): Tolerated clock skew into the future.

    Returns:
        IntegrityResult: Valid, or invalid with the failing code and reason.
    """
    data = snapshot.data
    if now_ms is None:
        now_ms = current_time_ms()

    # 1. Uniqueness
    seen_ids = set()
    collections = (
        data.folders,
        data.local_tracks,
        data.local_subtitles,
        data.subscriptions,
        data.favorites,
        data.playback_sessions,
    )
    for collection in collections:
        for record in collection:
            if record.id in seen_ids:
                return IntegrityResult.invalid(
                    IntegrityErrorCode.DUPLICATE_ID,
                    f"Duplicate ID detected: {record.id}",
                )
            seen_ids.add(record.id)

    # 2. Dangling references
    track_ids = {track.id for track in data.local_tracks}
    folder_ids = {folder.id for folder in data.folders}

    for subtitle in data.local_subtitles:
        if subtitle.track_id not in track_ids:
            return IntegrityResult.invalid(
                IntegrityErrorCode.DANGLING_SUBTITLE_REFERENCE,
                f"Dangling subtitle reference: Track {subtitle.track_id} not found",
            )

    for track in data.local_tracks:
        if track.folder_id and track.folder_id not in folder_ids:
            return IntegrityResult.invalid(
                IntegrityErrorCode.DANGLING_TRACK_REFERENCE,
                f"Dangling track reference: Folder {track.folder_id} not found",
            )

    for playback_session in data.playback_sessions:
        if (
            playback_session.source == "local"
            and playback_session.local_track_id
            and playback_session.local_track_id not in track_ids
        ):
            return IntegrityResult.invalid(
                IntegrityErrorCode.DANGLING_SESSION_REFERENCE,
                "Dangling session reference: Local track "
                f"{playback_session.local_track_id} not found",
            )

    # 3. Timestamp sanity
    latest_allowed = now_ms + max_skew_ms
    for timestamp in _timestamps(snapshot):
        if timestamp and timestamp > latest_allowed:
            return IntegrityResult.invalid(
                IntegrityErrorCode.FUTURE_TIMESTAMP,
                "Future timestamp detected in dataset",
            )

    # 4. Dedup constraints
    feed_urls = set()
    for subscription in data.subscriptions:
        if subscription.feed_url in feed_urls:
            return IntegrityResult.invalid(
                IntegrityErrorCode.DUPLICATE_SUBSCRIPTION_FEED,
                f"Duplicate subscription feedUrl: {subscription.feed_url}",
            )
        feed_urls.add(subscription.feed_url)

    favorite_keys = set()
    for favorite in data.favorites:
        if favorite.key in favorite_keys:
            return IntegrityResult.invalid(
                IntegrityErrorCode.DUPLICATE_FAVORITE_KEY,
                f"Duplicate favorite key: {favorite.key}",
            )
        favorite_keys.add(favorite.key)

    return IntegrityResult.valid()


def verify_subscription_list_integrity(items: List[Dict[str, Any]]) -> IntegrityResult:
    """
    Check a list of ``{title, feedUrl}`` items from a subscription exchange file.

    Only structure is checked: every item must carry an http(s) feed URL.
    Repeated feed URLs are allowed; the importer skips them while merging.
    """
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            return IntegrityResult(
                is_valid=False, error=f"Item {position} is not an object"
            )
        feed_url = item.get("feedUrl")
        if not isinstance(feed_url, str) or not feed_url.strip():
            return IntegrityResult(
                is_valid=False, error=f"Item {position} has no feedUrl"
            )
        if urlparse(feed_url.strip()).scheme not in ("http", "https"):
            return IntegrityResult(
                is_valid=False,
                error=f"Item {position} has an unsupported feedUrl: {feed_url}",
            )
    return IntegrityResult.valid()
