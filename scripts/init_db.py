import argparse
import logging
import sys
import traceback

from podcast_library.config import Config
from podcast_library.db.factory import create_repository_from_config

# Setup basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')


def initialize_database(config: Config):
    """
    Connect to the configured database and create every library table that does not exist yet.
    """
    try:
        logging.info("Attempting to connect to the database...")
        repository = create_repository_from_config(config, create_tables=True)
        try:
            stats = repository.get_storage_stats()
            logging.info(f"Database ready. Sessions: {stats['sessions']}, blobs: {stats['audio_blobs']}")
        finally:
            repository.close()

    except Exception:
        logging.error("An error occurred during database initialization.")
        logging.error(traceback.format_exc())
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the library database. Creates tables if they don't exist.")
    parser.add_argument("--yes", "-y", action="store_true", help="Bypass confirmation prompt.")
    parser.add_argument("--env-file", help="Path to a custom .env file", default=None)
    args = parser.parse_args()

    logging.info("Starting database initialization script.")
    config = Config(env_file=args.env_file)
    logging.info(f"Using database: {config.DATABASE_URL.split('@')[-1]}")

    if not args.yes:
        confirm = input("Initialize the database? This will create tables but not delete existing data. (y/n): ")
        if confirm.lower() != 'y':
            logging.info("Database initialization cancelled by user.")
            sys.exit(0)

    initialize_database(config)
