"""Tests for CLI library_commands module."""

import json

import pytest

from podcast_library.cli.library_commands import create_parser, main
from podcast_library.db.factory import create_repository


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    """Point the CLI at a temporary SQLite database."""
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    return url


@pytest.fixture
def open_repository(database_url):
    repositories = []

    def _open():
        repository = create_repository(database_url, create_tables=True)
        repositories.append(repository)
        return repository

    yield _open
    for repository in repositories:
        repository.close()


@pytest.fixture
def vault_file(tmp_path, vault_payload):
    path = tmp_path / "vault.json"
    path.write_text(json.dumps(vault_payload), encoding="utf-8")
    return path


class TestCreateParser:
    """Tests for create_parser function."""

    def test_has_env_file_argument(self):
        """Test that parser has --env-file argument."""
        parser = create_parser()
        args = parser.parse_args(["--env-file", "/path/.env", "stats"])
        assert args.env_file == "/path/.env"
        assert args.command == "stats"

    def test_import_subcommand(self):
        """Test import subcommand parsing."""
        parser = create_parser()
        args = parser.parse_args(["import", "/backups/vault.json", "--dry-run"])
        assert args.command == "import"
        assert args.file == "/backups/vault.json"
        assert args.dry_run is True

    def test_prune_subcommand(self):
        parser = create_parser()
        args = parser.parse_args(["prune"])
        assert args.command == "prune"
        assert args.dry_run is False

    def test_import_subscriptions_subcommand(self):
        parser = create_parser()
        args = parser.parse_args(["import-subscriptions", "feeds.json", "-d"])
        assert args.command == "import-subscriptions"
        assert args.file == "feeds.json"
        assert args.dry_run is True

    def test_log_level(self):
        parser = create_parser()
        args = parser.parse_args(["--log-level", "warning", "stats"])
        assert args.log_level == "WARNING"


class TestMain:
    """Tests for the main entry point."""

    def test_no_command_exits(self, database_url):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1

    def test_export(self, tmp_path, open_repository, capsys):
        """Test export writes the current library to a file."""
        repository = open_repository()
        repository.add_subscription("https://example.com/feed.xml", "Example Show")
        output = tmp_path / "out.json"

        main(["export", str(output)])

        exported = json.loads(output.read_text(encoding="utf-8"))
        assert exported["data"]["subscriptions"][0]["title"] == "Example Show"
        assert "Exported vault" in capsys.readouterr().out

    def test_import(self, vault_file, open_repository, capsys):
        main(["import", str(vault_file)])

        repository = open_repository()
        assert repository.count_playback_sessions() == 2
        assert repository.get_folder("folder-1").name == "Interviews"
        assert "Import complete" in capsys.readouterr().out

    def test_import_dry_run_writes_nothing(self, vault_file, open_repository, capsys):
        main(["import", str(vault_file), "--dry-run"])

        assert open_repository().count_playback_sessions() == 0
        assert "[DRY RUN] Vault is valid" in capsys.readouterr().out

    def test_import_rejects_invalid_vault(self, tmp_path, vault_payload, open_repository, capsys):
        """Test an inconsistent vault exits non-zero and writes nothing."""
        vault_payload["data"]["local_tracks"][0]["folderId"] = "missing-folder"
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(vault_payload), encoding="utf-8")

        with pytest.raises(SystemExit) as exc_info:
            main(["import", str(path)])

        assert exc_info.value.code == 1
        assert "Import rejected" in capsys.readouterr().out
        assert open_repository().count_playback_sessions() == 0

    def test_verify_valid(self, vault_file, database_url, capsys):
        main(["verify", str(vault_file)])

        assert "Vault is valid" in capsys.readouterr().out

    def test_verify_invalid(self, tmp_path, vault_payload, database_url, capsys):
        vault_payload["data"]["favorites"][0]["id"] = "folder-1"
        path = tmp_path / "dup.json"
        path.write_text(json.dumps(vault_payload), encoding="utf-8")

        with pytest.raises(SystemExit) as exc_info:
            main(["verify", str(path)])

        assert exc_info.value.code == 1
        assert "DuplicateId" in capsys.readouterr().out

    def test_verify_malformed(self, tmp_path, database_url, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")

        with pytest.raises(SystemExit):
            main(["verify", str(path)])

        assert "Malformed vault" in capsys.readouterr().out

    def test_stats(self, open_repository, capsys):
        repository = open_repository()
        repository.add_audio_blob(b"12345", "a.mp3")

        main(["stats"])

        out = capsys.readouterr().out
        assert "Library Statistics" in out
        assert "Audio blobs: 1 (5 bytes)" in out

    def test_prune_dry_run(self, open_repository, capsys):
        repository = open_repository()
        repository.create_playback_session(title="Old", last_played_at=1)

        main(["prune", "--dry-run"])

        assert "[DRY RUN] Would prune 1 sessions" in capsys.readouterr().out
        assert repository.count_playback_sessions() == 1

    def test_prune(self, open_repository, capsys):
        repository = open_repository()
        repository.create_playback_session(title="Old", last_played_at=1)
        repository.create_playback_session(title="Recent")

        main(["prune"])

        assert "Pruned 1 sessions" in capsys.readouterr().out
        assert repository.count_playback_sessions() == 1

    def test_import_subscriptions(self, tmp_path, open_repository, capsys):
        path = tmp_path / "feeds.json"
        path.write_text(
            json.dumps(
                [
                    {"title": "A", "feedUrl": "https://a.example.com/rss"},
                    {"title": "A", "feedUrl": "https://a.example.com/rss"},
                    {"title": "B", "feedUrl": "https://b.example.com/rss"},
                ]
            ),
            encoding="utf-8",
        )

        main(["import-subscriptions", str(path)])

        out = capsys.readouterr().out
        assert "Added: 2" in out
        assert "Skipped: 1" in out
        assert open_repository().count_subscriptions() == 2

    def test_import_subscriptions_not_a_list(self, tmp_path, database_url, capsys):
        path = tmp_path / "feeds.json"
        path.write_text(json.dumps({"feedUrl": "https://a.example.com/rss"}), encoding="utf-8")

        with pytest.raises(SystemExit) as exc_info:
            main(["import-subscriptions", str(path)])

        assert exc_info.value.code == 1
