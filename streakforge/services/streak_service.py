"""
streakforge.services.streak_service — Streak Read / Persist / Baseline
=======================================================================

Loads the evidence for one user, runs the pure
:func:`streakforge.engine.streak.compute_streak`, and (only when asked)
writes the result to the ``streaks`` row.

Reading never writes: :func:`compute_streak` leaves the database
untouched even when the user has no streak row yet.  Persisting happens
only through :func:`recompute_and_persist_streak`, which the
verification flow and the daily rollup call explicitly.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from streakforge.database.models import StreakState, UploadStatus
from streakforge.engine.dates import parse_ymd, today_ymd
from streakforge.engine.streak import StreakBaseline, StreakView
from streakforge.engine.streak import compute_streak as compute_streak_view
from streakforge.services.evidence_store import (
    get_user,
    latest_upload_date,
    list_rest_days,
    list_uploads,
)

logger = logging.getLogger(__name__)


def get_or_create_streak_state(session: Session, user_id: int) -> StreakState:
    """Return the user's streak row, inserting a zeroed one if missing."""
    state = session.get(StreakState, user_id)
    if state is None:
        get_user(session, user_id)
        state = StreakState(
            user_id=user_id,
            current_streak=0,
            longest_streak=0,
            admin_baseline_streak=0,
            admin_baseline_longest=0,
        )
        session.add(state)
        session.flush()
    return state


def _baseline_of(state: StreakState | None) -> StreakBaseline | None:
    if state is None or state.admin_baseline_date is None:
        return None
    return StreakBaseline(
        anchor_date=state.admin_baseline_date,
        streak=state.admin_baseline_streak,
        longest=state.admin_baseline_longest,
    )


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------
def compute_streak(
    session: Session, user_id: int, *, today: str | None = None
) -> StreakView:
    """Derive the user's streak from all evidence.  No writes."""
    today = today or today_ymd()
    state = session.get(StreakState, user_id)

    approved = [
        u.upload_date
        for u in list_uploads(session, user_id, status=UploadStatus.APPROVED)
    ]
    rest_dates = list_rest_days(session, user_id=user_id)

    return compute_streak_view(
        [*approved, *rest_dates],
        today=today,
        latest_rejected=latest_upload_date(session, user_id, UploadStatus.REJECTED),
        baseline=_baseline_of(state),
        stored_longest=state.longest_streak if state is not None else 0,
        approved_uploads=len(approved),
    )


# ---------------------------------------------------------------------------
# Persist
# ---------------------------------------------------------------------------
def recompute_and_persist_streak(
    session: Session, user_id: int, *, today: str | None = None
) -> StreakView:
    """Recompute from scratch and store the result on the streak row."""
    state = get_or_create_streak_state(session, user_id)
    view = compute_streak(session, user_id, today=today)

    if (state.current_streak, state.longest_streak) != (
        view.current_streak, view.longest_streak
    ):
        logger.info(
            "Streak user=%d: current %d → %d, longest %d → %d",
            user_id, state.current_streak, view.current_streak,
            state.longest_streak, view.longest_streak,
        )

    state.current_streak = view.current_streak
    state.longest_streak = view.longest_streak
    state.last_activity_date = view.last_activity_date
    session.flush()
    return view


# ---------------------------------------------------------------------------
# Admin baseline
# ---------------------------------------------------------------------------
def set_admin_baseline(
    session: Session,
    user_id: int,
    streak: int,
    anchor_date: str,
    longest: int | None = None,
    *,
    today: str | None = None,
) -> StreakState:
    """Set an administrator floor of *streak* days as of *anchor_date*.

    The stored current streak jumps to the baseline and the rollup
    watermark moves to today, so days before the baseline are never
    penalised.  The stored longest streak is never lowered.  A *streak*
    of 0 clears the baseline instead.

    Raises
    ------
    ValueError
        If *streak* or *longest* is negative or *anchor_date* is malformed.
    """
    if streak < 0 or (longest is not None and longest < 0):
        raise ValueError("Baseline values must be non-negative")
    parse_ymd(anchor_date)
    today = today or today_ymd()
    if streak == 0:
        clear_admin_baseline(session, user_id, today=today)
        return get_or_create_streak_state(session, user_id)

    effective_longest = max(longest if longest is not None else streak, streak)
    state = get_or_create_streak_state(session, user_id)
    state.admin_baseline_streak = streak
    state.admin_baseline_date = anchor_date
    state.admin_baseline_longest = effective_longest
    state.current_streak = streak
    state.longest_streak = max(state.longest_streak, effective_longest)
    state.last_activity_date = anchor_date
    state.last_rollup_date = today
    session.flush()

    logger.info(
        "Admin baseline set for user %d: streak=%d longest=%d anchor=%s",
        user_id, streak, effective_longest, anchor_date,
    )
    return state


def clear_admin_baseline(
    session: Session, user_id: int, *, today: str | None = None
) -> StreakView:
    """Remove the baseline and recompute from evidence alone."""
    state = get_or_create_streak_state(session, user_id)
    state.admin_baseline_streak = 0
    state.admin_baseline_date = None
    state.admin_baseline_longest = 0
    session.flush()
    logger.info("Admin baseline cleared for user %d", user_id)
    return recompute_and_persist_streak(session, user_id, today=today)
