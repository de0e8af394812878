"""Tests for cascading deletion."""

import pytest

from podcast_library.db.models import AudioBlob, Folder, LocalSubtitle, LocalTrack, SubtitleBlob
from podcast_library.library.cascade import CascadeDeleter
from podcast_library.vault.manager import VaultManager


@pytest.fixture
def cascade(repository):
    return CascadeDeleter(repository)


def _make_track(repository, name, folder_id=None, subtitles=1):
    """Create a track with its audio blob and `subtitles` attached captions."""
    audio = repository.add_audio_blob(b"audio-bytes", f"{name}.mp3", "audio/mpeg")
    track = repository.create_track(name, audio.id, 11, folder_id=folder_id)
    subtitle_ids = []
    for index in range(subtitles):
        blob = repository.add_subtitle_blob("1\n00:00:01,000 --> 00:00:02,000\nhi", f"{name}-{index}.srt")
        track_subtitle = repository.create_track_subtitle(track.id, f"{name}-{index}.srt", blob.id)
        subtitle_ids.append((track_subtitle.id, blob.id))
    return track, audio, subtitle_ids


class TestDeletionPlans:
    """Tests for planned deletion order."""

    def test_folder_plan_is_child_before_parent(self, repository, cascade):
        """Test subtitles precede tracks and tracks precede the folder."""
        folder = repository.create_folder("Podcasts")
        track, audio, subtitles = _make_track(repository, "ep", folder_id=folder.id)

        plan = cascade.plan_folder_deletion(folder.id)
        order = [model for model, _ in plan.steps]

        assert order.index(SubtitleBlob) < order.index(LocalSubtitle)
        assert order.index(LocalSubtitle) < order.index(LocalTrack)
        assert order.index(AudioBlob) < order.index(LocalTrack)
        assert order[-1] is Folder
        assert plan.ids_for(LocalTrack) == [track.id]
        assert len(plan) == 5

    def test_plan_for_missing_record_is_empty(self, cascade):
        """Test planning for a missing key yields nothing."""
        assert not cascade.plan_folder_deletion("missing")
        assert not cascade.plan_track_deletion("missing")
        assert not cascade.plan_session_deletion("missing")

    def test_session_plan_skips_track_audio(self, repository, cascade):
        """Test a track-backed session does not plan to delete the track's audio."""
        track, audio, _ = _make_track(repository, "ep", subtitles=0)
        playback_session = repository.create_playback_session(
            title="ep", local_track_id=track.id
        )

        plan = cascade.plan_session_deletion(playback_session.id)
        assert plan.steps == [(type(playback_session), playback_session.id)]


class TestDeleteFolder:
    """Tests for folder deletion."""

    def test_removes_tracks_subtitles_and_blobs(self, repository, cascade):
        """Test no track, subtitle or blob of the folder survives."""
        folder = repository.create_folder("Podcasts")
        first, first_audio, first_subs = _make_track(repository, "one", folder.id, subtitles=2)
        second, second_audio, _ = _make_track(repository, "two", folder.id, subtitles=0)
        outside, outside_audio, _ = _make_track(repository, "outside")

        removed = cascade.delete_folder(folder.id)

        assert removed == 1 + 2 * 2 + 2 * 2
        assert repository.get_folder(folder.id) is None
        assert repository.list_tracks_in_folder(folder.id) == []
        for track in (first, second):
            assert repository.list_subtitles_for_track(track.id) == []
        assert repository.get_audio_blob(first_audio.id) is None
        assert repository.get_audio_blob(second_audio.id) is None
        for track_subtitle_id, blob_id in first_subs:
            assert repository.get_track_subtitle(track_subtitle_id) is None
            assert repository.get_subtitle_blob(blob_id) is None
        assert repository.get_track(outside.id) is not None
        assert repository.get_audio_blob(outside_audio.id) is not None

    def test_missing_folder_is_noop(self, cascade):
        """Test deleting an absent folder removes nothing."""
        assert cascade.delete_folder("missing") == 0

    def test_failure_leaves_store_unchanged(self, repository, cascade, monkeypatch):
        """Test a failure part way through rolls back the whole cascade."""
        folder = repository.create_folder("Podcasts")
        track, audio, _ = _make_track(repository, "one", folder.id)

        original_apply = CascadeDeleter._apply

        def failing_apply(session, plan):
            original_apply(session, plan)
            raise RuntimeError("disk full")

        monkeypatch.setattr(CascadeDeleter, "_apply", staticmethod(failing_apply))

        with pytest.raises(RuntimeError):
            cascade.delete_folder(folder.id)

        assert repository.get_folder(folder.id) is not None
        assert repository.get_track(track.id) is not None
        assert repository.get_audio_blob(audio.id) is not None

    def test_sessions_in_folder_lose_track_reference(self, repository, cascade):
        """Test deleting a folder detaches sessions from all of its tracks."""
        folder = repository.create_folder("Podcasts")
        first, _, _ = _make_track(repository, "one", folder.id, subtitles=0)
        second, _, _ = _make_track(repository, "two", folder.id, subtitles=0)
        outside, _, _ = _make_track(repository, "outside", subtitles=0)
        ids = [
            repository.create_playback_session(title=track.name, local_track_id=track.id).id
            for track in (first, second, outside)
        ]

        cascade.delete_folder(folder.id)

        references = [repository.get_playback_session(i).local_track_id for i in ids]
        assert references == [None, None, outside.id]


class TestDeleteTrack:
    """Tests for track deletion."""

    def test_removes_subtitles_and_audio(self, repository, cascade):
        """Test the track's subtitles and audio are removed."""
        track, audio, subtitles = _make_track(repository, "ep", subtitles=1)

        assert cascade.delete_track(track.id) == 4
        assert repository.get_track(track.id) is None
        assert repository.get_audio_blob(audio.id) is None
        assert repository.get_subtitle_blob(subtitles[0][1]) is None

    def test_delete_track_subtitle_clears_active(self, repository, cascade):
        """Test deleting the active subtitle unsets it on the track."""
        track, _, subtitles = _make_track(repository, "ep", subtitles=1)
        track_subtitle_id, blob_id = subtitles[0]
        repository.update_track(track.id, active_subtitle_id=track_subtitle_id)

        assert cascade.delete_track_subtitle(track_subtitle_id) == 2
        assert repository.get_track(track.id).active_subtitle_id is None
        assert repository.get_subtitle_blob(blob_id) is None
        assert cascade.delete_track_subtitle(track_subtitle_id) == 0

    def test_sessions_lose_track_reference(self, repository, cascade):
        """Test sessions that played the track are kept without the reference."""
        track, audio, _ = _make_track(repository, "ep", subtitles=0)
        played = repository.create_playback_session(
            title="ep", source="local", local_track_id=track.id, progress=42.0
        )
        subtitle = repository.add_subtitle_blob("text", "ep.srt")
        captioned = repository.create_playback_session(
            title="ep again", local_track_id=track.id, subtitle_id=subtitle.id
        )

        cascade.delete_track(track.id)

        stored = repository.get_playback_session(played.id)
        assert stored.local_track_id is None
        assert stored.progress == 42.0
        assert repository.get_playback_session(captioned.id).subtitle_id == subtitle.id
        assert repository.get_subtitle_blob(subtitle.id) is not None

    def test_export_after_delete_reimports(self, repository, cascade):
        """Test the store stays importable after a track is deleted."""
        track, _, _ = _make_track(repository, "ep", subtitles=1)
        repository.create_playback_session(title="ep", source="local", local_track_id=track.id)
        manager = VaultManager(repository)

        cascade.delete_track(track.id)
        manager.import_snapshot(manager.export_dict())

        assert repository.count_playback_sessions() == 1


class TestDeleteSession:
    """Tests for session deletion."""

    def test_removes_owned_blobs(self, repository, cascade):
        """Test a session's own audio and subtitle blobs are removed."""
        audio = repository.add_audio_blob(b"abc", "upload.mp3")
        subtitle = repository.add_subtitle_blob("text", "upload.srt")
        playback_session = repository.create_playback_session(
            title="upload",
            audio_id=audio.id,
            has_audio_blob=True,
            subtitle_id=subtitle.id,
        )

        assert cascade.delete_session(playback_session.id) == 3
        assert repository.get_audio_blob(audio.id) is None
        assert repository.get_subtitle_blob(subtitle.id) is None

    def test_keeps_track_audio(self, repository, cascade):
        """Test deleting a track-backed session leaves the track intact."""
        track, audio, _ = _make_track(repository, "ep", subtitles=0)
        playback_session = repository.create_playback_session(
            title="ep", local_track_id=track.id
        )

        assert cascade.delete_session(playback_session.id) == 1
        assert repository.get_track(track.id) is not None
        assert repository.get_audio_blob(audio.id) is not None

    def test_delete_sessions_batch(self, repository, cascade):
        """Test deleting several sessions at once."""
        ids = [repository.create_playback_session(title=f"s{i}").id for i in range(3)]

        assert cascade.delete_sessions(ids[:2] + ["missing"]) == 2
        assert repository.count_playback_sessions() == 1


class TestSoftCascades:
    """Tests for cache clearing that keeps session metadata."""

    def test_clear_all_audio_blobs_keeps_track_audio(self, repository, cascade):
        """Test session audio is reclaimed while track audio survives."""
        track, track_audio, _ = _make_track(repository, "ep", subtitles=0)
        cached = repository.add_audio_blob(b"cached", "cached.mp3")
        playback_session = repository.create_playback_session(
            title="cached", audio_id=cached.id, has_audio_blob=True
        )

        assert cascade.clear_all_audio_blobs() == 1

        stored = repository.get_playback_session(playback_session.id)
        assert stored.audio_id is None
        assert stored.has_audio_blob is False
        assert repository.get_audio_blob(cached.id) is None
        assert repository.get_audio_blob(track_audio.id) is not None

    def test_clear_session_cache(self, repository, cascade):
        """Test a single session's cached audio can be dropped."""
        cached = repository.add_audio_blob(b"cached", "cached.mp3")
        playback_session = repository.create_playback_session(
            title="cached", audio_id=cached.id, has_audio_blob=True
        )

        assert cascade.clear_session_cache(playback_session.id) is True
        assert repository.get_audio_blob(cached.id) is None
        assert repository.get_playback_session(playback_session.id).has_audio_blob is False
        assert cascade.clear_session_cache(playback_session.id) is False
