"""
Database connectivity for the video game catalog.

A single long-lived MongoClient is opened at startup and shared by every
request through its own connection pool. Route handlers receive the database
handle through the `get_db` dependency instead of importing a global, so tests
can swap in an in-memory store.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import Request
from pymongo import MongoClient
from pymongo.database import Database

load_dotenv()

logger = logging.getLogger("videojuegos.database")

DEFAULT_DATABASE_NAME = "videojuegos"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the root catalog logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger("videojuegos")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(numeric)
    return root


def database_url():
    return os.getenv("DATABASE_URL") or os.getenv("MONGODB_URI")


def batch_relations_enabled() -> bool:
    return os.getenv("CATALOG_BATCH_RELATIONS", "").strip().lower() in ("1", "true", "yes")


def connect(url: str, name: str | None = None, timeout_ms: int | None = None) -> tuple[MongoClient, Database]:
    """Open the shared client and make sure the server answers.

    Args:
        url: MongoDB connection string.
        name: Database name. Falls back to the URI's default database, then
            to "videojuegos".
        timeout_ms: Server selection timeout in milliseconds.

    Returns:
        tuple: `(client, db)`.

    Raises:
        pymongo.errors.PyMongoError: if the server cannot be reached or the
            URI is malformed.
    """
    if timeout_ms is None:
        timeout_ms = int(os.getenv("DATABASE_TIMEOUT_MS", "5000"))
    client = MongoClient(url, serverSelectionTimeoutMS=timeout_ms)
    try:
        client.admin.command("ping")
    except Exception:
        client.close()
        raise
    name = name or os.getenv("DATABASE_NAME")
    db = client[name] if name else client.get_default_database(default=DEFAULT_DATABASE_NAME)
    logger.info("Connected to MongoDB database %s", db.name)
    return client, db


def get_db(request: Request) -> Database:
    """FastAPI dependency returning the database opened at startup."""
    return request.app.state.db
