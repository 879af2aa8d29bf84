# File: app/db/init_db.py
"""
Database initialization for ContactHub.

Creates the database directory for file-based SQLite URLs and the schema.

Usage:
    python -m app.db.init_db [--reset]
"""

import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional

from sqlalchemy.engine import make_url

from app.core.config import settings
from app.db.session import init_db

logger = logging.getLogger(__name__)


def create_database_directory(database_url: str) -> None:
    """Create the directory of a file-based SQLite database if it doesn't exist."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return

    db_dir = Path(url.database).parent
    if str(db_dir) and not db_dir.exists():
        logger.info(f"Creating database directory: {db_dir}")
        os.makedirs(db_dir, exist_ok=True)


def initialize(reset: bool = False) -> None:
    """
    Initialize the database.

    Args:
        reset: Whether to reset the database by dropping all tables first
    """
    create_database_directory(settings.DATABASE_URL)

    if not init_db(reset=reset):
        raise RuntimeError("Database initialization failed")
    logger.info("Database initialized successfully")


def main(argv: Optional[List[str]] = None) -> None:
    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Initialize the ContactHub database")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args(argv)

    initialize(reset=args.reset)


if __name__ == "__main__":
    main()
