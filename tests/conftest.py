"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from streakforge.database.engine import enable_sqlite_savepoints
from streakforge.database.models import Base, User
from streakforge.database.seed import seed_default_settings
from streakforge.engine.dates import get_default_timezone, set_default_timezone
from streakforge.services.verification_service import record_upload, verify_upload


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all streakforge tables.

    Uses StaticPool so every session shares the same in-memory database,
    and the SAVEPOINT hooks so ``begin_nested()`` rolls back correctly.
    Default settings are seeded.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    return engine


@pytest.fixture
def make_user(db_engine: Engine):
    """Factory: insert a user and return its id."""
    counter = {"n": 0}

    def _make(
        registration_date: str = "2024-01-01",
        *,
        username: str | None = None,
        is_premium: bool = False,
        trophies: int = 0,
    ) -> int:
        counter["n"] += 1
        with Session(db_engine) as session:
            user = User(
                username=username or f"user{counter['n']}",
                registration_date=registration_date,
                is_premium=is_premium,
                trophies=trophies,
            )
            session.add(user)
            session.commit()
            return user.id

    return _make


@pytest.fixture
def upload_day(db_engine: Engine):
    """Factory: record an upload on *date* (as if uploaded that day) and
    optionally moderate it the same day.  Returns the upload id."""

    def _upload(user_id: int, date: str, status: str | None = "approved") -> int:
        ok, message, upload_id = record_upload(
            db_engine, user_id, f"/uploads/{user_id}/{date}.jpg",
            upload_date=date, today=date,
        )
        assert ok, message
        if status is not None and status != "pending":
            ok, message = verify_upload(db_engine, upload_id, status, 99, today=date)
            assert ok, message
        return upload_id

    return _upload


@pytest.fixture
def configured_timezone():
    """Yield :func:`set_default_timezone`; the previous zone is restored afterwards."""
    previous = get_default_timezone()
    yield set_default_timezone
    set_default_timezone(previous)
