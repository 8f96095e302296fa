"""
streakforge.database.engine — Database Connection & Session Helper
===================================================================

**Why this file exists:**
Every reconciliation call is a short, synchronous sequence of reads and
writes triggered by the request that caused it.  This module provides the
three pieces those calls share:

    1. ``create_db_engine()`` — the pooled engine, from ``DATABASE_URL``.
    2. ``init_db(engine)``    — a one-shot schema barrier (create + seed),
       run once per engine before the first request is served.
    3. ``get_session(engine)`` — commit on success, roll back on exception.

In production the schema is owned by Alembic (``alembic upgrade head``),
run as a separate step before the service accepts traffic.

Usage::

    from streakforge.database.engine import create_db_engine, get_session, init_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with get_session(engine) as session:
        ...
"""

from __future__ import annotations

import logging
import os
import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session

from streakforge.database.models import Base
from streakforge.database.seed import seed_default_settings

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_initialized_engines: weakref.WeakSet[Engine] = weakref.WeakSet()


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    PostgreSQL engines get a small connection pool:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    SQLite URLs (development) skip pool tuning and get SAVEPOINT support
    via :func:`enable_sqlite_savepoints`.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid database URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False)
        enable_sqlite_savepoints(engine)
    else:
        engine = create_engine(
            url,
            echo=False,        # Set True for SQL debugging
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,   # Reconnect stale connections automatically
            pool_timeout=10,      # Fail after 10s instead of hanging forever
            pool_recycle=3600,    # Recycle connections after 1 hour
        )
    logger.info("Database engine created → %s", engine.url.host or engine.url.database)
    return engine


def enable_sqlite_savepoints(engine: Engine) -> None:
    """Make pysqlite honour BEGIN / SAVEPOINT so nested transactions roll back.

    pysqlite defers BEGIN until the first DML statement, which breaks
    ``Session.begin_nested()``.  Turning off its implicit transaction
    handling and emitting BEGIN ourselves restores correct semantics.
    Also switches on foreign-key enforcement.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables and seed default settings, once per engine.

    Concurrent callers block on a lock until the first one finishes;
    later calls return immediately.  ``create_all`` and the seeder are
    both idempotent, so a restart simply re-verifies the schema.
    """
    with _init_lock:
        if engine in _initialized_engines:
            return

        Base.metadata.create_all(engine)
        logger.info("Database tables verified / created.")

        seed_default_settings(engine)
        _initialized_engines.add(engine)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(User(username="drew", registration_date="2024-01-01"))
            # commit happens automatically on block exit
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
