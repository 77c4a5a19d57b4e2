"""Database file lifecycle and engine creation using SQLModel."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine

from .logging_config import get_logger

logger = get_logger(__name__)

SQLITE_HEADER = b"SQLite format 3"
LINKS_TABLE = "links"


class DatabaseError(RuntimeError):
    """The database file or schema is unusable; the server must not start."""


def create_db_engine(db_path: Path) -> Engine:
    """Return an engine for the SQLite file at *db_path*."""
    # check_same_thread=False is needed for SQLite if using across threads (FastAPI)
    return create_engine(
        f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
    )


def validate_database_file(db_path: Path) -> None:
    """Raise DatabaseError unless *db_path* starts with the SQLite header."""
    try:
        with db_path.open("rb") as handle:
            header = handle.read(16)
    except OSError as exc:
        raise DatabaseError(f"failed to open database file {db_path}: {exc}") from exc

    if header[: len(SQLITE_HEADER)] != SQLITE_HEADER:
        raise DatabaseError(f"invalid SQLite database file: {db_path}")


def seed_database(db_path: Path, seed_path: Optional[Path]) -> bool:
    """Copy *seed_path* to *db_path* when the seed exists. Returns True if copied."""
    if seed_path is None or not seed_path.is_file():
        return False
    validate_database_file(seed_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        shutil.copyfile(seed_path, db_path)
    except OSError as exc:
        raise DatabaseError(f"failed to write seeded database file: {exc}") from exc
    logger.info(f"Seeded database from {seed_path}")
    return True


def init_db(engine: Engine) -> None:
    """Create database tables."""
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL;")

    SQLModel.metadata.create_all(engine)


def check_database_health(engine: Engine) -> bool:
    """Return True when the links table is present."""
    try:
        with engine.connect() as conn:
            row = conn.exec_driver_sql(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                (LINKS_TABLE,),
            ).fetchone()
    except SQLAlchemyError as exc:
        logger.error(f"Database health check failed: {exc}")
        return False
    return row is not None and row[0] == LINKS_TABLE


def open_database(db_path: Path, seed_path: Optional[Path] = None) -> Engine:
    """Validate (or seed) the database file, apply the schema and return an engine.

    Raises DatabaseError when the file is not a SQLite database or the
    schema cannot be created.
    """
    if db_path.is_dir():
        raise DatabaseError(f"database path is a directory: {db_path}")
    if db_path.exists():
        validate_database_file(db_path)
    elif not seed_database(db_path, seed_path):
        # sqlite creates the file on first connect; create_all prepares it
        db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Creating new database at {db_path}")

    engine = create_db_engine(db_path)
    try:
        init_db(engine)
    except SQLAlchemyError as exc:
        engine.dispose()
        raise DatabaseError(f"failed to initialize schema: {exc}") from exc
    return engine


def reset_database(db_path: Path) -> Engine:
    """Delete the database file and recreate it empty."""
    if db_path.exists():
        db_path.unlink()
    return open_database(db_path)
