"""
streakforge.services.rollup_service — Daily Rollup & Nightly Sweep
===================================================================

Catches calendar days on which a user did nothing at all: no approved
upload and no rest day.  Verification events never see those days, so a
watermark-driven sweep penalises them instead.

Two ways in:

* :func:`ensure_daily_rollup` — the lazy path.  The first relevant read
  or write per user per process per day runs the rollup; a
  :class:`RollupGate` keeps later calls that day from touching the DB.
  Failures are logged and swallowed so the read path proceeds, and the
  watermark stays put for the next attempt.
* :func:`run_nightly_sweep` — the scheduled path (``python -m
  streakforge``).  Once per calendar day, for every user: rollup, week
  rollover, bulk bonus sync, then photo retention.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from threading import Lock

from sqlalchemy import Engine, exists, or_, select
from sqlalchemy.orm import Session

from streakforge.database.engine import get_session
from streakforge.database.models import RestDay, Upload, UploadStatus
from streakforge.engine.dates import add_days, date_range, today_ymd, yesterday_ymd
from streakforge.engine.hooks import Collaborators, TrophyNotice, send_trophy_notices
from streakforge.services.challenge_service import get_or_create_active_challenge
from streakforge.services.evidence_store import list_user_ids
from streakforge.services.retention_service import purge_resolved_weeks
from streakforge.services.settings_service import get_str, set_setting
from streakforge.services.streak_service import (
    get_or_create_streak_state,
    recompute_and_persist_streak,
)
from streakforge.services.trophy_service import (
    apply_missed_day_penalty,
    sync_all_weekly_bonuses,
)

logger = logging.getLogger(__name__)

SWEEP_WATERMARK_KEY = "rollup.last_sweep_date"


# ---------------------------------------------------------------------------
# Core rollup
# ---------------------------------------------------------------------------
def _day_has_activity(session: Session, user_id: int, date_ymd: str) -> bool:
    approved = exists().where(
        Upload.user_id == user_id,
        Upload.upload_date == date_ymd,
        Upload.verification_status == UploadStatus.APPROVED.value,
    )
    rested = exists().where(
        RestDay.user_id == user_id,
        RestDay.rest_date == date_ymd,
    )
    return bool(session.scalar(select(or_(approved, rested))))


def run_daily_rollup(
    session: Session,
    user_id: int,
    *,
    today: str | None = None,
    notices: list[TrophyNotice] | None = None,
) -> dict:
    """Penalise missed days since the watermark, recompute, advance.

    Returns ``{"applied": bool, "today": str, "missed_days": [...]}``.
    ``applied`` is False when the watermark already equals today.

    The scan, the streak write and the watermark move share one SAVEPOINT:
    if anything raises, none of it sticks.
    """
    today = today or today_ymd()
    yesterday = yesterday_ymd(today)
    state = get_or_create_streak_state(session, user_id)

    if state.last_rollup_date == today:
        return {"applied": False, "today": today, "missed_days": []}

    # Resume from the last rollup day (it was still in progress back then);
    # a user who never rolled up starts after their last activity.
    if state.last_rollup_date:
        base = add_days(state.last_rollup_date, -1)
    else:
        base = state.last_activity_date

    missed: list[str] = []
    with session.begin_nested():
        if base and base < yesterday:
            for day in date_range(add_days(base, 1), yesterday):
                if _day_has_activity(session, user_id, day):
                    continue
                apply_missed_day_penalty(session, user_id, day, notices=notices)
                missed.append(day)

        recompute_and_persist_streak(session, user_id, today=today)
        state.last_rollup_date = today
        session.flush()

    if missed:
        logger.info(
            "Rollup user=%d: %d missed day(s) %s..%s",
            user_id, len(missed), missed[0], missed[-1],
        )
    return {"applied": True, "today": today, "missed_days": missed}


# ---------------------------------------------------------------------------
# Per-process gate
# ---------------------------------------------------------------------------
class RollupGate:
    """Remembers which users already rolled up today in this process.

    Thread-safe.  Purely an optimisation: the watermark in the database
    is what makes the rollup exactly-once.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        # user_id → calendar date of the last successful rollup
        self._done: dict[int, str] = {}

    def claim(self, user_id: int, today: str) -> bool:
        """Return True if the caller should run the rollup for *today*."""
        with self._lock:
            if self._done.get(user_id) == today:
                return False
            self._done[user_id] = today
            return True

    def release(self, user_id: int) -> None:
        with self._lock:
            self._done.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._done.clear()


_default_gate = RollupGate()


def ensure_daily_rollup(
    engine: Engine,
    user_id: int,
    *,
    today: str | None = None,
    gate: RollupGate | None = None,
    collaborators: Collaborators | None = None,
) -> dict:
    """Lazy rollup for the read path.  Never raises."""
    today = today or today_ymd()
    gate = gate or _default_gate
    if not gate.claim(user_id, today):
        return {"applied": False, "today": today, "missed_days": []}

    notices: list[TrophyNotice] = []
    try:
        with get_session(engine) as session:
            result = run_daily_rollup(session, user_id, today=today, notices=notices)
    except Exception:
        gate.release(user_id)
        logger.exception("Daily rollup failed for user %d; will retry", user_id)
        return {"applied": False, "today": today, "missed_days": []}

    send_trophy_notices(collaborators or Collaborators(), notices)
    return result


# ---------------------------------------------------------------------------
# Nightly sweep
# ---------------------------------------------------------------------------
def run_nightly_sweep(
    engine: Engine,
    *,
    today: str | None = None,
    collaborators: Collaborators | None = None,
    force: bool = False,
) -> dict:
    """Roll every user over to *today*, once per calendar day.

    Per-user failures are collected, never raised, and keep the day's
    watermark from advancing.  Returns a summary dict; ``skipped`` is
    True when the sweep already finished cleanly today.
    """
    today = today or today_ymd()
    collaborators = collaborators or Collaborators()

    with get_session(engine) as session:
        last_run = get_str(session, SWEEP_WATERMARK_KEY)
        user_ids = list_user_ids(session)

    if last_run == today and not force:
        logger.info("Nightly sweep already ran for %s; skipping", today)
        return {"skipped": True, "today": today}

    summary: dict = {
        "skipped": False,
        "today": today,
        "users_processed": len(user_ids),
        "rollups_applied": 0,
        "rollups_skipped": 0,
        "bonuses_changed": 0,
        "photos_released": 0,
        "errors": [],
    }

    for user_id in user_ids:
        notices: list[TrophyNotice] = []
        try:
            with get_session(engine) as session:
                rollup = run_daily_rollup(session, user_id, today=today, notices=notices)
                get_or_create_active_challenge(session, user_id, today=today)
                summary["bonuses_changed"] += sync_all_weekly_bonuses(
                    session, user_id, notices=notices
                )
        except Exception as exc:
            logger.exception("Nightly sweep failed for user %d", user_id)
            summary["errors"].append({"user_id": user_id, "error": str(exc)})
            continue

        if rollup["applied"]:
            summary["rollups_applied"] += 1
        else:
            summary["rollups_skipped"] += 1
        send_trophy_notices(collaborators, notices)

        try:
            purged = purge_resolved_weeks(
                engine, user_id, today=today, collaborators=collaborators
            )
            summary["photos_released"] += purged["photos_released"]
        except Exception:
            logger.exception("Retention purge failed for user %d", user_id)

    # Only a clean run closes the day
    if not summary["errors"]:
        with get_session(engine) as session:
            set_setting(session, SWEEP_WATERMARK_KEY, today, category="rollup")

    summary["finished_at"] = datetime.now(UTC).isoformat()
    logger.info(
        "Nightly sweep %s: %d users, %d rollups, %d bonus changes, %d errors",
        today, len(user_ids), summary["rollups_applied"],
        summary["bonuses_changed"], len(summary["errors"]),
    )
    return summary
