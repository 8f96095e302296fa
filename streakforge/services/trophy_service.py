"""
streakforge.services.trophy_service — Trophy Ledger & Bonus Engine
===================================================================

Every balance change goes through :func:`apply_trophy_delta`, which
updates ``users.trophies`` and appends one ``trophy_transactions`` row
inside a SAVEPOINT.  A negative delta is clamped so the balance stops
at exactly 0; only the clamped amount is applied and logged.

All sync routines follow the same shape:

    1. compute the *target* net for a key (upload, challenge bonus, day)
    2. sum what the ledger already holds for that key
    3. apply only the difference

so calling them repeatedly, or out of order, converges on one state.

Applied deltas are appended to an optional ``notices`` list.  Callers
hand that list to the notifier after their transaction commits.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, exists, func, select
from sqlalchemy.orm import Session

from streakforge.database.engine import get_session
from streakforge.database.models import (
    UPLOAD_SYNC_REASONS,
    WEEKLY_BONUS_REASONS,
    ChallengeStatus,
    LedgerReason,
    TrophyTransaction,
    Upload,
    WeeklyChallenge,
)
from streakforge.constants import WEEK_LENGTH_DAYS
from streakforge.engine.dates import add_days
from streakforge.engine.hooks import Collaborators, TrophyNotice, send_trophy_notices
from streakforge.engine.trophies import (
    missed_day_penalty,
    trophies_for_status,
    weekly_bonus_for,
)
from streakforge.services.evidence_store import get_user, load_week_tally

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------
def get_balance(session: Session, user_id: int) -> int:
    return get_user(session, user_id).trophies or 0


def apply_trophy_delta(
    session: Session,
    user_id: int,
    delta: int,
    kind: LedgerReason,
    *,
    upload_id: int | None = None,
    challenge_id: int | None = None,
    reason_date: str | None = None,
    notices: list[TrophyNotice] | None = None,
) -> int:
    """Apply *delta* to the user's balance and log it.

    Returns the amount actually applied (0 when clamped away entirely).
    """
    if delta == 0:
        return 0

    with session.begin_nested():
        user = get_user(session, user_id)
        current = user.trophies or 0
        applied = delta
        if delta < 0 and current + delta < 0:
            applied = -current
            logger.info(
                "Clamped trophy delta for user %d: requested %+d, applied %+d",
                user_id, delta, applied,
            )
        if applied == 0:
            return 0

        user.trophies = current + applied
        session.add(TrophyTransaction(
            user_id=user_id,
            upload_id=upload_id,
            challenge_id=challenge_id,
            reason_kind=kind.value,
            reason_date=reason_date,
            delta=applied,
        ))

    logger.info(
        "Trophies user=%d %+d (%s) → balance %d",
        user_id, applied, kind.value, user.trophies,
    )
    if notices is not None:
        notices.append(TrophyNotice(user_id=user_id, delta=applied, kind=kind))
    return applied


# ---------------------------------------------------------------------------
# Per-upload sync
# ---------------------------------------------------------------------------
def upload_net(session: Session, upload_id: int) -> int:
    return session.scalar(
        select(func.coalesce(func.sum(TrophyTransaction.delta), 0))
        .where(TrophyTransaction.upload_id == upload_id)
    ) or 0


def sync_trophies_for_upload(
    session: Session,
    upload_id: int,
    *,
    notices: list[TrophyNotice] | None = None,
) -> int:
    """Bring the ledger net for one upload in line with its status.

    Returns the applied delta (0 when already in sync).

    Raises
    ------
    LookupError
        If the upload does not exist.
    """
    upload = session.get(Upload, upload_id)
    if upload is None:
        raise LookupError(f"Upload {upload_id} not found")

    target = trophies_for_status(upload.id, upload.status)
    delta = target - upload_net(session, upload.id)
    if delta == 0:
        return 0
    return apply_trophy_delta(
        session,
        upload.user_id,
        delta,
        UPLOAD_SYNC_REASONS[upload.status],
        upload_id=upload.id,
        notices=notices,
    )


# ---------------------------------------------------------------------------
# Missed days
# ---------------------------------------------------------------------------
def missed_day_already_penalized(session: Session, user_id: int, date_ymd: str) -> bool:
    return bool(session.scalar(
        select(exists().where(
            TrophyTransaction.user_id == user_id,
            TrophyTransaction.reason_kind == LedgerReason.MISSED_DAY.value,
            TrophyTransaction.reason_date == date_ymd,
        ))
    ))


def apply_missed_day_penalty(
    session: Session,
    user_id: int,
    date_ymd: str,
    *,
    notices: list[TrophyNotice] | None = None,
) -> int:
    """Penalise one missed day at most once.  Returns the applied delta."""
    if missed_day_already_penalized(session, user_id, date_ymd):
        return 0
    return apply_trophy_delta(
        session,
        user_id,
        missed_day_penalty(user_id, date_ymd),
        LedgerReason.MISSED_DAY,
        reason_date=date_ymd,
        notices=notices,
    )


# ---------------------------------------------------------------------------
# Weekly bonus
# ---------------------------------------------------------------------------
def challenge_qualifies_for_bonus(session: Session, challenge: WeeklyChallenge) -> bool:
    """A perfect week: 7 valid days and nothing left pending."""
    return load_week_tally(session, challenge).is_perfect


def count_consecutive_perfect_weeks(session: Session, challenge: WeeklyChallenge) -> int:
    """Perfect weeks ending at *challenge*, counting backwards by start date.

    The chain stops at the first imperfect week or at the first gap: a
    window with no row never saw any evidence, so it cannot be perfect.
    """
    history = session.scalars(
        select(WeeklyChallenge)
        .where(
            WeeklyChallenge.user_id == challenge.user_id,
            WeeklyChallenge.start_date <= challenge.start_date,
        )
        .order_by(WeeklyChallenge.start_date.desc())
    ).all()

    consecutive = 0
    expected = challenge.start_date
    for week in history:
        if week.start_date != expected or not challenge_qualifies_for_bonus(session, week):
            break
        consecutive += 1
        expected = add_days(expected, -WEEK_LENGTH_DAYS)
    return consecutive


def weekly_bonus_net(session: Session, challenge_id: int) -> int:
    return session.scalar(
        select(func.coalesce(func.sum(TrophyTransaction.delta), 0))
        .where(
            TrophyTransaction.challenge_id == challenge_id,
            TrophyTransaction.reason_kind.in_([r.value for r in WEEKLY_BONUS_REASONS]),
        )
    ) or 0


def sync_weekly_bonus(
    session: Session,
    challenge: WeeklyChallenge,
    *,
    notices: list[TrophyNotice] | None = None,
) -> int:
    """Award, adjust, or revoke the bonus for one week.  Returns the applied delta."""
    qualifies = challenge_qualifies_for_bonus(session, challenge)
    target = 0
    if qualifies:
        target = weekly_bonus_for(count_consecutive_perfect_weeks(session, challenge))

    delta = target - weekly_bonus_net(session, challenge.id)
    if delta == 0:
        return 0

    kind = LedgerReason.WEEKLY_BONUS if qualifies else LedgerReason.WEEKLY_BONUS_REVOKED
    return apply_trophy_delta(
        session,
        challenge.user_id,
        delta,
        kind,
        challenge_id=challenge.id,
        notices=notices,
    )


def sync_all_weekly_bonuses(
    session: Session,
    user_id: int,
    *,
    notices: list[TrophyNotice] | None = None,
) -> int:
    """Re-sync every closed week, oldest first.  Returns weeks changed.

    Later weeks' consecutive counts depend on earlier ones, so a flip in
    a past week can shift every bonus after it.  Weeks waiting in
    ``pending_evaluation`` are included: they cannot qualify, so any bonus
    they still hold is revoked.
    """
    closed = session.scalars(
        select(WeeklyChallenge)
        .where(
            WeeklyChallenge.user_id == user_id,
            WeeklyChallenge.status.in_([
                ChallengeStatus.COMPLETED.value,
                ChallengeStatus.FAILED.value,
                ChallengeStatus.PENDING_EVALUATION.value,
            ]),
        )
        .order_by(WeeklyChallenge.start_date)
    ).all()

    changed = 0
    for challenge in closed:
        if sync_weekly_bonus(session, challenge, notices=notices) != 0:
            changed += 1
    return changed


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
def admin_set_trophies(
    engine: Engine,
    user_id: int,
    value: int,
    *,
    collaborators: Collaborators | None = None,
) -> int:
    """Set a user's balance to exactly *value*, logging the difference.

    Returns the applied delta.

    Raises
    ------
    ValueError
        If *value* is negative.
    """
    if value < 0:
        raise ValueError("Trophy balance cannot be negative")

    notices: list[TrophyNotice] = []
    with get_session(engine) as session:
        delta = value - get_balance(session, user_id)
        applied = apply_trophy_delta(
            session, user_id, delta, LedgerReason.ADMIN_SET, notices=notices
        )

    send_trophy_notices(collaborators or Collaborators(), notices)
    return applied
