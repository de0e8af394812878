"""
Pytest configuration and fixtures for podcast-library tests.

This module runs before any test imports. Environment variables read by the
library are cleared so tests behave the same regardless of the developer's
shell or .env file.
"""

import os

import pytest

from podcast_library.db.factory import create_repository
from podcast_library.utils.time_utils import DAY_MS, now_ms

for _name in (
    "DATABASE_URL",
    "LOG_LEVEL",
    "RETENTION_MAX_SESSIONS",
    "RETENTION_DAYS",
    "RETENTION_BATCH_SIZE",
    "RETENTION_BATCH_DELAY_MS",
    "INTEGRITY_CLOCK_SKEW_HOURS",
):
    os.environ.pop(_name, None)


@pytest.fixture
def repository(tmp_path):
    """
    Create a temporary SQLite-backed repository for tests.

    Yields a repository using a SQLite file under the temporary path and closes it on teardown.
    """
    db_path = tmp_path / "test.db"
    repo = create_repository(f"sqlite:///{db_path}", create_tables=True)
    yield repo
    repo.close()


def make_vault(now=None):
    """
    Build a structurally valid, consistent vault payload as it appears on the wire.

    Contains one folder with one track and subtitle, a root-level track, two
    subscriptions, one favorite, a local and a remote session, and a setting.
    """
    now = now or now_ms()
    day_ago = now - DAY_MS
    return {
        "version": 1,
        "exportedAt": now,
        "data": {
            "folders": [
                {"id": "folder-1", "name": "Interviews", "createdAt": day_ago},
            ],
            "local_tracks": [
                {
                    "id": "track-1",
                    "folderId": "folder-1",
                    "name": "Episode One",
                    "audioId": "audio-1",
                    "sizeBytes": 2048,
                    "durationSeconds": 95.0,
                    "createdAt": day_ago,
                    "activeSubtitleId": "track-sub-1",
                },
                {
                    "id": "track-2",
                    "folderId": None,
                    "name": "Loose Recording",
                    "audioId": "audio-2",
                    "sizeBytes": 512,
                    "createdAt": day_ago,
                },
            ],
            "local_subtitles": [
                {
                    "id": "track-sub-1",
                    "trackId": "track-1",
                    "name": "Episode One.srt",
                    "subtitleId": "sub-blob-1",
                },
            ],
            "subscriptions": [
                {
                    "id": "sub-1",
                    "feedUrl": "https://example.com/feed.xml",
                    "title": "Example Show",
                    "author": "Example Author",
                    "artworkUrl": "https://example.com/art.jpg",
                    "addedAt": day_ago,
                    "providerPodcastId": "12345",
                },
                {
                    "id": "sub-2",
                    "feedUrl": "https://other.example.com/rss",
                    "title": "Other Show",
                    "author": "",
                    "artworkUrl": "",
                    "addedAt": day_ago,
                },
            ],
            "favorites": [
                {
                    "id": "fav-1",
                    "key": "https://example.com/feed.xml::https://example.com/ep1.mp3",
                    "feedUrl": "https://example.com/feed.xml",
                    "audioUrl": "https://example.com/ep1.mp3",
                    "episodeTitle": "Pilot",
                    "podcastTitle": "Example Show",
                    "artworkUrl": "",
                    "addedAt": day_ago,
                    "duration": 1800.0,
                },
            ],
            "playback_sessions": [
                {
                    "id": "session-local",
                    "source": "local",
                    "title": "Episode One",
                    "createdAt": day_ago,
                    "lastPlayedAt": now - 1000,
                    "sizeBytes": 2048,
                    "duration": 95.0,
                    "progress": 12.5,
                    "hasAudioBlob": False,
                    "audioFilename": "",
                    "subtitleFilename": "",
                    "localTrackId": "track-1",
                },
                {
                    "id": "session-remote",
                    "source": "remote",
                    "title": "Pilot",
                    "createdAt": day_ago,
                    "lastPlayedAt": now - 2000,
                    "sizeBytes": 0,
                    "duration": 1800.0,
                    "progress": 600.0,
                    "hasAudioBlob": False,
                    "audioFilename": "",
                    "subtitleFilename": "",
                    "audioUrl": "https://example.com/ep1.mp3",
                    "podcastTitle": "Example Show",
                    "podcastFeedUrl": "https://example.com/feed.xml",
                },
            ],
            "settings": [
                {"key": "playbackRate", "value": "1.25", "updatedAt": day_ago},
            ],
        },
    }


@pytest.fixture
def vault_payload():
    """A consistent vault payload (wire format dict)."""
    return make_vault()


@pytest.fixture
def vault_factory():
    """Return the vault builder so tests can pick the reference time."""
    return make_vault
