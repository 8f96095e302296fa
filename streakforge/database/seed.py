"""
streakforge.database.seed — Default Settings Seeder
====================================================

Baseline gameplay settings seeded on first startup so quotas and the
retention window resolve without manual setup.

Idempotent — only inserts keys that don't already exist.  Settings
changed later by an operator are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from streakforge.constants import (
    DEFAULT_PURGE_AFTER_WEEKS,
    DEFAULT_REST_DAYS_PREMIUM,
    DEFAULT_REST_DAYS_STANDARD,
)
from streakforge.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "challenge.rest_days_standard": (
        DEFAULT_REST_DAYS_STANDARD, "challenge", "Rest days granted per week (regular users)",
    ),
    "challenge.rest_days_premium": (
        DEFAULT_REST_DAYS_PREMIUM, "challenge", "Rest days granted per week (premium users)",
    ),
    "retention.purge_after_weeks": (
        DEFAULT_PURGE_AFTER_WEEKS, "retention",
        "Photos of resolved weeks older than this many weeks are released",
    ),
    "rollup.last_sweep_date": (
        "", "rollup", "Last calendar date the nightly sweep completed",
    ),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist.

    Runs on every startup but only writes rows for keys that are missing,
    so it is safe to call repeatedly.
    """
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            existing = session.get(Setting, key)
            if existing is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)
