"""CLI commands for library maintenance.

Provides commands for:
- Exporting and importing vault snapshots
- Verifying a vault file without importing it
- Pruning playback history
- Importing subscription lists
- Viewing storage statistics
"""

import argparse
import asyncio
import json
import logging
import sys

from ..argparse_shared import (
    add_dry_run_argument,
    add_file_argument,
    add_log_level_argument,
    get_base_parser,
)
from ..config import Config
from ..db.factory import create_repository_from_config
from ..errors import IntegrityViolation, LibraryError, MalformedSnapshot
from ..library.subscriptions import import_subscription_list
from ..vault.integrity import verify_vault_integrity
from ..vault.manager import VaultManager
from ..vault.schemas import parse_snapshot
from ..workflow.config import RetentionConfig
from ..workflow.workers.retention import RetentionWorker

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _vault_manager(repository) -> VaultManager:
    retention = RetentionConfig.from_env()
    return VaultManager(repository, clock_skew_ms=retention.clock_skew_ms)


def export_vault(args, config: Config):
    """
    Write a vault snapshot of every metadata collection to `args.file`.

    Parameters:
        args: CLI arguments with `file` (str), the output path.
        config (Config): Application configuration providing database settings.
    """
    repository = create_repository_from_config(config, create_tables=True)

    try:
        snapshot = _vault_manager(repository).export_to_file(args.file)
        data = snapshot.data
        print(f"\nExported vault to {args.file}")
        print(f"  Folders: {len(data.folders)}")
        print(f"  Tracks: {len(data.local_tracks)}")
        print(f"  Subscriptions: {len(data.subscriptions)}")
        print(f"  Favorites: {len(data.favorites)}")
        print(f"  Sessions: {len(data.playback_sessions)}")
        print(f"  Settings: {len(data.settings)}")

    finally:
        repository.close()


def import_vault(args, config: Config):
    """
    Replace the library metadata with the vault in `args.file`.

    With `args.dry_run`, the vault is validated and verified but nothing is written.
    Exits with status 1 when the vault is malformed or fails verification.
    """
    repository = create_repository_from_config(config, create_tables=True)

    try:
        manager = _vault_manager(repository)
        with open(args.file, encoding="utf-8") as f:
            payload = f.read()

        if args.dry_run:
            snapshot = manager.validate(payload)
            print(f"\n[DRY RUN] Vault is valid: {len(snapshot.data.playback_sessions)} sessions, "
                  f"{len(snapshot.data.subscriptions)} subscriptions")
            return

        snapshot = manager.import_snapshot(payload)
        print(f"\nImport complete:")
        print(f"  Sessions: {len(snapshot.data.playback_sessions)}")
        print(f"  Subscriptions: {len(snapshot.data.subscriptions)}")
        print(f"  Tracks: {len(snapshot.data.local_tracks)}")

    except (MalformedSnapshot, IntegrityViolation) as e:
        print(f"Import rejected: {e}")
        sys.exit(1)

    finally:
        repository.close()


def verify_vault(args, config: Config):
    """Check a vault file's structure and integrity without touching the store."""
    retention = RetentionConfig.from_env()
    try:
        with open(args.file, encoding="utf-8") as f:
            snapshot = parse_snapshot(f.read())
    except MalformedSnapshot as e:
        print(f"Malformed vault: {e}")
        sys.exit(1)

    result = verify_vault_integrity(snapshot, max_skew_ms=retention.clock_skew_ms)
    if not result.is_valid:
        print(f"Invalid vault ({result.code.value}): {result.error}")
        sys.exit(1)

    print("Vault is valid")


def prune_history(args, config: Config):
    """Apply the retention policy to the playback history."""
    repository = create_repository_from_config(config, create_tables=True)

    try:
        worker = RetentionWorker(repository, config=RetentionConfig.from_env())
        cutoff = worker.compute_cutoff()

        if args.dry_run:
            pending = repository.count_sessions_played_before(cutoff.effective)
            print(f"\n[DRY RUN] Would prune {pending} sessions played before {cutoff.effective}")
            return

        result = asyncio.run(worker.prune())
        print(f"\nPruned {result.processed} sessions")
        if result.errors:
            print(f"  Errors: {len(result.errors)}")

    finally:
        repository.close()


def show_stats(args, config: Config):
    """Print record counts and blob storage usage."""
    repository = create_repository_from_config(config, create_tables=True)

    try:
        stats = repository.get_storage_stats()

        print(f"\nLibrary Statistics:")
        print(f"  Sessions: {stats['sessions']}")
        print(f"  Subscriptions: {repository.count_subscriptions()}")
        print(f"  Favorites: {len(repository.list_favorites())}")
        print(f"  Folders: {len(repository.list_folders())}")
        print(f"  Tracks: {len(repository.list_tracks())}")
        print(f"\n  Storage:")
        print(f"    Audio blobs: {stats['audio_blobs']} ({stats['audio_blobs_size']} bytes)")
        print(f"    Subtitles: {stats['subtitles']} ({stats['subtitles_size']} bytes)")
        print(f"    Total: {stats['total_size']} bytes")

    finally:
        repository.close()


def import_subscriptions(args, config: Config):
    """
    Subscribe to every feed listed in a JSON file of ``{title, feedUrl}`` items.

    Repeated and already-subscribed feeds are skipped.
    """
    with open(args.file, encoding="utf-8") as f:
        try:
            items = json.load(f)
        except json.JSONDecodeError as e:
            print(f"Invalid subscription list: {e}")
            sys.exit(1)

    if not isinstance(items, list):
        print("Invalid subscription list: expected a JSON array")
        sys.exit(1)

    repository = create_repository_from_config(config, create_tables=True)

    try:
        if args.dry_run:
            print(f"\n[DRY RUN] Would import up to {len(items)} feeds:")
            for item in items:
                if isinstance(item, dict):
                    print(f"  - {item.get('title') or 'Unknown'}: {item.get('feedUrl')}")
            return

        stats = import_subscription_list(repository, items)
        print(f"\nImport complete:")
        print(f"  Added: {stats['added']}")
        print(f"  Skipped: {stats['skipped']}")

    except MalformedSnapshot as e:
        print(f"Import rejected: {e}")
        sys.exit(1)

    finally:
        repository.close()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = get_base_parser("Local podcast library CLI")
    add_log_level_argument(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    export_parser = subparsers.add_parser("export", help="Export a vault snapshot")
    add_file_argument(export_parser, "Output path for the vault JSON")

    import_parser = subparsers.add_parser(
        "import",
        help="Replace library metadata with a vault snapshot",
    )
    add_file_argument(import_parser, "Path to the vault JSON")
    add_dry_run_argument(import_parser)

    verify_parser = subparsers.add_parser("verify", help="Verify a vault file")
    add_file_argument(verify_parser, "Path to the vault JSON")

    prune_parser = subparsers.add_parser(
        "prune",
        help="Prune playback history to the retention policy",
    )
    add_dry_run_argument(prune_parser)

    subparsers.add_parser("stats", help="Show library statistics")

    subscriptions_parser = subparsers.add_parser(
        "import-subscriptions",
        help="Import a JSON list of {title, feedUrl} subscriptions",
    )
    add_file_argument(subscriptions_parser, "Path to the subscription list JSON")
    add_dry_run_argument(subscriptions_parser)

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Load configuration
    config = Config(env_file=args.env_file)

    logging.basicConfig(
        level=getattr(logging, args.log_level or config.LOG_LEVEL),
        format=LOG_FORMAT,
    )

    # Route to appropriate command
    commands = {
        "export": export_vault,
        "import": import_vault,
        "verify": verify_vault,
        "prune": prune_history,
        "stats": show_stats,
        "import-subscriptions": import_subscriptions,
    }

    command_func = commands.get(args.command)
    if command_func is None:
        parser.print_help()
        sys.exit(1)

    try:
        command_func(args, config)
    except LibraryError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
