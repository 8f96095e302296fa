"""
streakforge.services.settings_service — Typed Settings Access
==============================================================

Gameplay tuning (rest-day quotas, retention window) and small pieces of
job state (the nightly sweep watermark) live in the ``settings`` table as
JSON values.  Readers here fall back to the caller's default when the
row is missing or holds the wrong shape, so a half-seeded database still
behaves with the built-in rules from :mod:`streakforge.constants`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from streakforge.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_setting(session: Session, key: str, default: Any = None) -> Any:
    """Decoded value of *key*, or *default* if no row exists.

    A value that is not valid JSON comes back as the raw stored text.
    """
    row = session.get(Setting, key)
    if row is None:
        return default
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


def get_int(session: Session, key: str, default: int) -> int:
    raw = get_setting(session, key, default)
    if isinstance(raw, bool):
        raw = default
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Setting %s is not an integer (%r); using %d", key, raw, default)
        return default


def get_str(session: Session, key: str, default: str = "") -> str:
    raw = get_setting(session, key, default)
    return raw if isinstance(raw, str) else default


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def set_setting(
    session: Session,
    key: str,
    value: Any,
    *,
    category: str = "general",
    description: str | None = None,
) -> Setting:
    """Upsert one setting in the caller's unit of work (flushed, not committed)."""
    row = session.get(Setting, key)
    if row is None:
        row = Setting(key=key, category=category, description=description)
        session.add(row)
    elif description is not None:
        row.description = description
    row.value_json = json.dumps(value)
    session.flush()
    logger.info("Setting %s = %r", key, value)
    return row
