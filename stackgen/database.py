"""MySQL connectivity checks and database creation.

Uses SQLAlchemy with the PyMySQL driver.  The driver is blocking, so each
operation runs in a worker thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import re
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from .config import DatabaseConfig

# MySQL server error: unknown database.
ER_BAD_DB_ERROR = 1049

_DB_NAME_RE = re.compile(r"^[A-Za-z0-9_$]{1,64}$")


class DatabaseError(Exception):
    """Raised when a database name is unusable or the server cannot be reached."""


class DatabaseResult(BaseModel):
    """Outcome of a database operation."""

    success: bool
    existed: bool = False
    exists: Optional[bool] = None
    message: str = ""
    error: Optional[str] = None


def validate_database_name(name: str) -> None:
    """Reject names that cannot be safely used as a quoted identifier.

    Raises:
        DatabaseError: If *name* is empty, too long or has other characters
            than letters, digits, ``_`` and ``$``.
    """
    if not _DB_NAME_RE.match(name or ""):
        raise DatabaseError(
            f"Invalid database name '{name}': use letters, digits, '_' or '$' (max 64)"
        )


def _engine(db: DatabaseConfig, *, with_database: bool = False) -> Engine:
    return create_engine(
        db.url(with_database=with_database),
        poolclass=NullPool,
        connect_args={"connect_timeout": 10},
    )


def _error_code(exc: SQLAlchemyError) -> Optional[int]:
    if isinstance(exc, DBAPIError) and exc.orig is not None and exc.orig.args:
        code = exc.orig.args[0]
        return code if isinstance(code, int) else None
    return None


def _describe(exc: SQLAlchemyError) -> str:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


# ---------------------------------------------------------------------------
# Blocking implementations
# ---------------------------------------------------------------------------


def _ping(db: DatabaseConfig, with_database: bool) -> None:
    engine = _engine(db, with_database=with_database)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    finally:
        engine.dispose()


def _create(db: DatabaseConfig) -> bool:
    """Create the database unless present.  Returns whether it already existed."""
    engine = _engine(db)
    try:
        with engine.connect() as conn:
            pattern = db.name.replace("_", r"\_").replace("%", r"\%")
            rows = conn.execute(text("SHOW DATABASES LIKE :name"), {"name": pattern}).fetchall()
            if any(row[0] == db.name for row in rows):
                return True
            conn.execute(
                text(
                    f"CREATE DATABASE IF NOT EXISTS `{db.name}` "
                    "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                )
            )
            conn.commit()
            return False
    finally:
        engine.dispose()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def check_connection(db: DatabaseConfig) -> DatabaseResult:
    """Connect to the server (no schema selected) and run a trivial query."""
    try:
        await asyncio.to_thread(_ping, db, False)
    except SQLAlchemyError as exc:
        return DatabaseResult(success=False, error=_describe(exc))
    return DatabaseResult(success=True, message=f"Connected to {db.host}:{db.port}")


async def create_database(db: DatabaseConfig) -> DatabaseResult:
    """Create ``db.name`` with the utf8mb4 character set if it does not exist."""
    try:
        validate_database_name(db.name)
    except DatabaseError as exc:
        return DatabaseResult(success=False, error=str(exc))

    try:
        existed = await asyncio.to_thread(_create, db)
    except SQLAlchemyError as exc:
        return DatabaseResult(success=False, error=_describe(exc))

    if existed:
        return DatabaseResult(
            success=True, existed=True, exists=True, message=f"Database {db.name} already exists"
        )
    return DatabaseResult(
        success=True, existed=False, exists=True, message=f"Database {db.name} created"
    )


async def database_exists(db: DatabaseConfig) -> DatabaseResult:
    """Connect straight to ``db.name``; an unknown database is not a failure."""
    try:
        await asyncio.to_thread(_ping, db, True)
    except SQLAlchemyError as exc:
        if _error_code(exc) == ER_BAD_DB_ERROR:
            return DatabaseResult(success=True, exists=False)
        return DatabaseResult(success=False, exists=False, error=_describe(exc))
    return DatabaseResult(success=True, exists=True)
