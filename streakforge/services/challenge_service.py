"""
streakforge.services.challenge_service — Weekly Challenge Evaluator
====================================================================

Lifecycle of a weekly challenge::

    active ──(window closes)──▶ pending_evaluation ──▶ completed | failed
                 │                                        ▲
                 └──(nothing pending)─────────────────────┘

* :func:`get_or_create_active_challenge` opens the window containing
  today and finalizes any older still-active week (no bonus at rollover;
  bonuses are synced by verification and the nightly sweep).
* :func:`evaluate_challenge` recounts a window, stores the status, and
  syncs the bonus (a week back in ``pending_evaluation`` loses it).
* :func:`reevaluate_challenge_after_verification` re-runs evaluation for
  closed weeks only, so a live week is never finalized mid-flight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from streakforge.constants import (
    DEFAULT_REST_DAYS_PREMIUM,
    DEFAULT_REST_DAYS_STANDARD,
    WEEK_LENGTH_DAYS,
)
from streakforge.database.models import (
    ChallengeStatus,
    RestDay,
    User,
    WeeklyChallenge,
)
from streakforge.engine.dates import today_ymd
from streakforge.engine.hooks import TrophyNotice
from streakforge.engine.week import WeekTally, decide_status, week_end_for, week_start_for
from streakforge.services.evidence_store import (
    get_registration_date,
    get_user,
    load_week_tally,
)
from streakforge.services.settings_service import get_int
from streakforge.services.trophy_service import (
    challenge_qualifies_for_bonus,
    sync_all_weekly_bonuses,
    sync_weekly_bonus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChallengeEvaluation:
    """Outcome of one evaluation pass."""

    challenge_id: int
    status: ChallengeStatus
    completed_days: int
    bonus_awarded: bool = False


# ---------------------------------------------------------------------------
# Rest-day quota
# ---------------------------------------------------------------------------
def rest_day_limit(session: Session, user: User) -> int:
    """Weekly rest-day allotment: premium users get more."""
    if user.is_premium:
        return get_int(session, "challenge.rest_days_premium", DEFAULT_REST_DAYS_PREMIUM)
    return get_int(session, "challenge.rest_days_standard", DEFAULT_REST_DAYS_STANDARD)


def rest_days_used(session: Session, challenge_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(RestDay).where(RestDay.challenge_id == challenge_id)
    ) or 0


def rest_days_remaining(session: Session, challenge: WeeklyChallenge) -> int:
    return max(challenge.rest_days_available - rest_days_used(session, challenge.id), 0)


# ---------------------------------------------------------------------------
# Lookup / rollover
# ---------------------------------------------------------------------------
def get_challenge(session: Session, challenge_id: int) -> WeeklyChallenge:
    challenge = session.get(WeeklyChallenge, challenge_id)
    if challenge is None:
        raise LookupError(f"Challenge {challenge_id} not found")
    return challenge


def find_challenge_for_date(
    session: Session, user_id: int, date_ymd: str
) -> WeeklyChallenge | None:
    """The user's challenge whose window contains *date_ymd*, if one exists."""
    return session.scalar(
        select(WeeklyChallenge).where(
            WeeklyChallenge.user_id == user_id,
            WeeklyChallenge.start_date <= date_ymd,
            WeeklyChallenge.end_date >= date_ymd,
        )
    )


def get_or_create_active_challenge(
    session: Session, user_id: int, *, today: str | None = None
) -> WeeklyChallenge:
    """Return the challenge whose window contains *today*, creating it if needed.

    Creating a new window first finalizes every older ``active`` week
    from non-pending evidence.  Weeks that still hold pending uploads
    move to ``pending_evaluation`` and wait for moderation.

    Raises
    ------
    LookupError
        If the user does not exist.
    """
    today = today or today_ymd()
    start = week_start_for(get_registration_date(session, user_id), today)

    challenge = session.scalar(
        select(WeeklyChallenge).where(
            WeeklyChallenge.user_id == user_id,
            WeeklyChallenge.start_date == start,
        )
    )
    if challenge is not None:
        return challenge

    stale = session.scalars(
        select(WeeklyChallenge)
        .where(
            WeeklyChallenge.user_id == user_id,
            WeeklyChallenge.status == ChallengeStatus.ACTIVE.value,
            WeeklyChallenge.start_date < start,
        )
        .order_by(WeeklyChallenge.start_date)
    ).all()
    for previous in stale:
        evaluate_challenge_no_bonus(session, previous.id)

    challenge = WeeklyChallenge(
        user_id=user_id,
        start_date=start,
        end_date=week_end_for(start),
        status=ChallengeStatus.ACTIVE.value,
        completed_days=0,
        rest_days_available=rest_day_limit(session, get_user(session, user_id)),
    )
    session.add(challenge)
    session.flush()
    logger.info(
        "Opened week %s..%s for user %d (challenge %d, %d rest days)",
        challenge.start_date, challenge.end_date, user_id,
        challenge.id, challenge.rest_days_available,
    )
    return challenge


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
def _store_evaluation(
    session: Session, challenge: WeeklyChallenge, tally: WeekTally
) -> ChallengeStatus:
    status = decide_status(tally)
    if challenge.status != status.value:
        logger.info(
            "Challenge %d (user %d): %s → %s (%d/%d days)",
            challenge.id, challenge.user_id, challenge.status, status.value,
            tally.completed_days, WEEK_LENGTH_DAYS,
        )
    challenge.status = status.value
    challenge.completed_days = tally.completed_days
    session.flush()
    return status


def evaluate_challenge(
    session: Session,
    challenge_id: int,
    *,
    notices: list[TrophyNotice] | None = None,
) -> ChallengeEvaluation:
    """Recount, store the status, and sync the bonus.

    A week still waiting on moderation cannot qualify, so syncing it
    revokes any bonus it held before an upload went back to pending.
    """
    challenge = get_challenge(session, challenge_id)
    tally = load_week_tally(session, challenge)
    status = _store_evaluation(session, challenge, tally)

    sync_weekly_bonus(session, challenge, notices=notices)
    bonus_awarded = status.is_terminal and challenge_qualifies_for_bonus(session, challenge)

    return ChallengeEvaluation(
        challenge_id=challenge.id,
        status=status,
        completed_days=tally.completed_days,
        bonus_awarded=bonus_awarded,
    )


def evaluate_challenge_no_bonus(session: Session, challenge_id: int) -> ChallengeEvaluation:
    """Recount and store the status without touching the ledger."""
    challenge = get_challenge(session, challenge_id)
    tally = load_week_tally(session, challenge)
    status = _store_evaluation(session, challenge, tally)
    return ChallengeEvaluation(
        challenge_id=challenge.id,
        status=status,
        completed_days=tally.completed_days,
    )


def reevaluate_challenge_after_verification(
    session: Session,
    challenge_id: int,
    *,
    notices: list[TrophyNotice] | None = None,
) -> ChallengeEvaluation | None:
    """Re-run evaluation for a closed week after one of its uploads changed.

    Returns ``None`` when the challenge is missing or still active.
    Every later week's bonus is re-synced too, since their consecutive-week
    counts may have shifted.
    """
    challenge = session.get(WeeklyChallenge, challenge_id)
    if challenge is None or challenge.challenge_status is ChallengeStatus.ACTIVE:
        return None

    result = evaluate_challenge(session, challenge_id, notices=notices)
    sync_all_weekly_bonuses(session, challenge.user_id, notices=notices)
    return result


# ---------------------------------------------------------------------------
# Progress (read-only)
# ---------------------------------------------------------------------------
def get_challenge_progress(session: Session, challenge_id: int) -> dict:
    """Day-by-day breakdown of one challenge for display."""
    challenge = get_challenge(session, challenge_id)
    tally = load_week_tally(session, challenge)
    return {
        "challenge_id": challenge.id,
        "start_date": challenge.start_date,
        "end_date": challenge.end_date,
        "status": challenge.status,
        "total_days": WEEK_LENGTH_DAYS,
        "completed_days": tally.completed_days,
        "pending_days": tally.pending,
        "rejected_days": tally.rejected,
        "rest_days_remaining": rest_days_remaining(session, challenge),
        "days": [
            {
                "date": d.date,
                "uploaded": d.upload_status is not None,
                "verification_status": (
                    d.upload_status.value if d.upload_status is not None else None
                ),
                "is_rest_day": d.rest_day,
            }
            for d in tally.days
        ],
    }
