"""Database factory for creating repository instances.

Detects the database type from the URL and configures the engine for SQLite
(on-device default) or any other SQLAlchemy backend.
"""

import logging
import os
from typing import Optional

from .repository import LibraryRepositoryInterface, SQLAlchemyLibraryRepository

logger = logging.getLogger(__name__)

# Default database URL for on-device storage
DEFAULT_DATABASE_URL = "sqlite:///./podcast_library.db"


def create_repository(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
    create_tables: bool = False,
) -> LibraryRepositoryInterface:
    """
    Create a LibraryRepositoryInterface configured from the provided or discovered database URL.

    If `database_url` is not provided, it is read from the `DATABASE_URL` environment variable; if that is unset, a local SQLite default is used. Pool settings are ignored for SQLite.

    Parameters:
        database_url (Optional[str]): SQLAlchemy database URL to use; if None the environment or default is used.
        pool_size (int): Connection pool size; ignored for SQLite.
        max_overflow (int): Maximum overflow connections; ignored for SQLite.
        echo (bool): If true, enable SQL statement logging.
        create_tables (bool): If true, create missing tables without running migrations.

    Returns:
        LibraryRepositoryInterface: A repository instance backed by the resolved database URL.
    """
    if database_url is None:
        database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    # Log database type (without credentials)
    if "://" in database_url:
        db_type = database_url.split("://")[0]
        if "@" in database_url:
            db_location = database_url.split("@")[-1]
            logger.info(f"Creating {db_type} repository: ...@{db_location}")
        else:
            logger.info(f"Creating {db_type} repository: {database_url}")
    else:
        logger.info(f"Creating repository with URL: {database_url}")

    return SQLAlchemyLibraryRepository(
        database_url=database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
        create_tables=create_tables,
    )


def create_repository_from_config(config, create_tables: bool = False) -> LibraryRepositoryInterface:
    """
    Build a repository from a `Config`-like object.

    Parameters:
        config: Object exposing DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW and DB_ECHO.
        create_tables (bool): Forwarded to `create_repository`.
    """
    database_url = getattr(config, "DATABASE_URL", None) or os.getenv(
        "DATABASE_URL", DEFAULT_DATABASE_URL
    )
    return create_repository(
        database_url=database_url,
        pool_size=getattr(config, "DB_POOL_SIZE", 5),
        max_overflow=getattr(config, "DB_MAX_OVERFLOW", 10),
        echo=getattr(config, "DB_ECHO", False),
        create_tables=create_tables,
    )
