"""Configuration for the Forkast dining feedback store.

Values come from the environment (a local .env file is loaded first), so the same
code runs against the on-disk database in development and an in-memory one in tests.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.engine import make_url

load_dotenv()

ROOT_DIR = Path(__file__).parent.resolve()

DB_FILE_NAME = "forkast.db"
DEFAULT_DATABASE_URL = f"sqlite:///{ROOT_DIR / DB_FILE_NAME}"


class Config:
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    SECRET_KEY: Optional[str] = os.getenv("SECRET_KEY")

    # Higher = slower hashing and harder brute force
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    BCRYPT_ROUNDS = 4
    LOG_LEVEL = "DEBUG"


def database_path(uri: str) -> Optional[Path]:
    """Get the file backing a SQLite URI.

    Args:
        uri: SQLAlchemy database URI.

    Returns:
        Path of the database file, or None for in-memory and non-SQLite URIs.
    """
    url = make_url(uri)
    if url.get_backend_name() != "sqlite":
        return None
    if not url.database or url.database == ":memory:":
        return None
    return Path(url.database)
