"""
streakforge.services.verification_service — Verification Entry Points
======================================================================

**Why this file exists:**
A moderation decision touches three derived metrics that must agree
with each other.  Everything that changes evidence funnels through here
so the follow-up always runs in the same order:

    1. trophy sync for the one upload
    2. full streak recompute
    3. week re-evaluation (closed weeks only) + bonus re-sync
    ── commit ──
    4. downstream hooks: trophy notifications, achievements, referrals

Steps 1-3 share one transaction.  Step 4 is best effort: a hook that
raises is logged and never undoes the verification.

Validation problems (unknown upload, duplicate evidence, no rest days
left) come back as ``(False, message)`` results rather than exceptions.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from streakforge.database.engine import get_session
from streakforge.database.models import (
    ChallengeStatus,
    RestDay,
    Upload,
    UploadStatus,
    User,
    WeeklyChallenge,
)
from streakforge.engine.dates import is_valid_ymd, today_ymd
from streakforge.engine.hooks import Collaborators, TrophyNotice, send_trophy_notices
from streakforge.services.challenge_service import (
    find_challenge_for_date,
    get_or_create_active_challenge,
    reevaluate_challenge_after_verification,
    rest_days_remaining,
)
from streakforge.services.evidence_store import list_rest_days, upload_on
from streakforge.services.streak_service import recompute_and_persist_streak
from streakforge.services.trophy_service import sync_trophies_for_upload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reconciliation sequence
# ---------------------------------------------------------------------------
def _reconcile_upload(
    session: Session,
    upload: Upload,
    challenge_id: int | None,
    *,
    today: str,
    notices: list[TrophyNotice],
) -> dict:
    applied = sync_trophies_for_upload(session, upload.id, notices=notices)
    streak = recompute_and_persist_streak(session, upload.user_id, today=today)

    if challenge_id is None:
        challenge_id = upload.challenge_id
    if challenge_id is None:
        week = find_challenge_for_date(session, upload.user_id, upload.upload_date)
        challenge_id = week.id if week is not None else None

    evaluation = None
    if challenge_id is not None:
        evaluation = reevaluate_challenge_after_verification(
            session, challenge_id, notices=notices
        )

    return {
        "upload_id": upload.id,
        "status": upload.verification_status,
        "trophy_delta": applied,
        "current_streak": streak.current_streak,
        "longest_streak": streak.longest_streak,
        "challenge_status": evaluation.status.value if evaluation else None,
    }


def _run_hooks(
    collaborators: Collaborators,
    notices: list[TrophyNotice],
    user_id: int,
    upload_id: int,
    status: UploadStatus,
) -> None:
    send_trophy_notices(collaborators, notices)

    try:
        collaborators.achievements.check(user_id)
    except Exception:
        logger.exception("Achievement check failed for user %d", user_id)

    try:
        collaborators.referrals.on_upload_verified(user_id, upload_id, status)
    except Exception:
        logger.exception("Referral hook failed for upload %d", upload_id)


def on_verification_changed(
    engine: Engine,
    upload_id: int,
    user_id: int,
    challenge_id: int | None,
    new_status: UploadStatus,
    *,
    today: str | None = None,
    collaborators: Collaborators | None = None,
) -> dict:
    """Re-derive everything that depends on one upload's verification status.

    Safe to call any number of times: every step diffs against what is
    already recorded.  The stored upload row is authoritative; a
    mismatching *new_status* is logged and the row's status wins.

    Raises
    ------
    LookupError
        If the upload does not exist.
    """
    today = today or today_ymd()
    collaborators = collaborators or Collaborators()
    notices: list[TrophyNotice] = []

    with get_session(engine) as session:
        upload = session.get(Upload, upload_id)
        if upload is None:
            raise LookupError(f"Upload {upload_id} not found")
        if upload.user_id != user_id:
            logger.warning(
                "Upload %d belongs to user %d, not %d; using the stored owner",
                upload_id, upload.user_id, user_id,
            )
        if upload.status is not UploadStatus(new_status):
            logger.warning(
                "Upload %d is %s, caller reported %s; using the stored status",
                upload_id, upload.verification_status, new_status,
            )
        summary = _reconcile_upload(
            session, upload, challenge_id, today=today, notices=notices
        )
        owner = upload.user_id
        status = upload.status

    _run_hooks(collaborators, notices, owner, upload_id, status)
    return summary


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
def verify_upload(
    engine: Engine,
    upload_id: int,
    status: UploadStatus | str,
    moderator_id: int | None = None,
    *,
    today: str | None = None,
    collaborators: Collaborators | None = None,
) -> tuple[bool, str]:
    """Set an upload's moderation status and reconcile.

    Moving an upload back to ``pending`` clears the verifier stamp.
    Re-applying the current status is allowed and simply re-runs the
    idempotent reconciliation.
    """
    try:
        new_status = UploadStatus(status)
    except ValueError:
        return False, f"Invalid status: {status!r}"

    today = today or today_ymd()
    collaborators = collaborators or Collaborators()
    notices: list[TrophyNotice] = []

    with get_session(engine) as session:
        upload = session.get(Upload, upload_id)
        if upload is None:
            logger.info("verify_upload: upload %d not found", upload_id)
            return False, "Upload not found"

        previous = upload.verification_status
        upload.verification_status = new_status.value
        if new_status is UploadStatus.PENDING:
            upload.verified_at = None
            upload.verified_by = None
        else:
            upload.verified_at = datetime.now(UTC)
            upload.verified_by = moderator_id
        session.flush()

        _reconcile_upload(session, upload, None, today=today, notices=notices)
        user_id = upload.user_id

    logger.info(
        "Upload %d: %s → %s (moderator %s)",
        upload_id, previous, new_status.value, moderator_id,
    )
    _run_hooks(collaborators, notices, user_id, upload_id, new_status)
    return True, f"Upload {new_status.value}"


# ---------------------------------------------------------------------------
# Evidence creation
# ---------------------------------------------------------------------------
def record_upload(
    engine: Engine,
    user_id: int,
    photo_path: str | None = None,
    *,
    upload_date: str | None = None,
    today: str | None = None,
) -> tuple[bool, str, int | None]:
    """Store a new pending upload.

    Never touches streak or trophies: those change only when the upload
    is verified.  Returns ``(ok, message, upload_id)``.
    """
    today = today or today_ymd()
    upload_date = upload_date or today
    if not is_valid_ymd(upload_date):
        return False, "Invalid date", None
    if upload_date > today:
        return False, "Cannot upload for a future date", None

    with get_session(engine) as session:
        if session.get(User, user_id) is None:
            return False, "User not found", None
        if upload_on(session, user_id, upload_date) is not None:
            logger.info("Duplicate upload rejected: user %d on %s", user_id, upload_date)
            return False, "Already uploaded for this date", None
        if list_rest_days(session, user_id=user_id, start=upload_date, end=upload_date):
            return False, "Rest day already claimed for this date", None

        get_or_create_active_challenge(session, user_id, today=today)
        week = find_challenge_for_date(session, user_id, upload_date)

        upload = Upload(
            user_id=user_id,
            challenge_id=week.id if week is not None else None,
            upload_date=upload_date,
            photo_path=photo_path,
            verification_status=UploadStatus.PENDING.value,
        )
        session.add(upload)
        session.flush()
        upload_id = upload.id

    logger.info("Upload %d recorded for user %d on %s", upload_id, user_id, upload_date)
    return True, "Upload recorded", upload_id


def use_rest_day(
    engine: Engine,
    user_id: int,
    challenge_id: int | None = None,
    rest_date: str | None = None,
    *,
    today: str | None = None,
) -> tuple[bool, str]:
    """Claim a rest day inside a live week, then recompute the streak.

    Defaults to today and the user's active challenge.
    """
    today = today or today_ymd()
    rest_date = rest_date or today
    if not is_valid_ymd(rest_date):
        return False, "Invalid date"
    if rest_date > today:
        return False, "Cannot claim a rest day in the future"

    with get_session(engine) as session:
        if session.get(User, user_id) is None:
            return False, "User not found"

        if challenge_id is None:
            challenge = get_or_create_active_challenge(session, user_id, today=today)
        else:
            challenge = session.get(WeeklyChallenge, challenge_id)
            if challenge is None or challenge.user_id != user_id:
                return False, "Challenge not found"

        if challenge.challenge_status is not ChallengeStatus.ACTIVE:
            return False, "This week is already closed"
        if not (challenge.start_date <= rest_date <= challenge.end_date):
            return False, "Date is outside this week"
        if upload_on(session, user_id, rest_date) is not None:
            return False, "You already uploaded for this day"
        if list_rest_days(session, user_id=user_id, start=rest_date, end=rest_date):
            return False, "Rest day already used for this date"
        if rest_days_remaining(session, challenge) <= 0:
            logger.info("Rest day refused for user %d: quota exhausted", user_id)
            return False, "No rest days remaining this week"

        session.add(RestDay(
            user_id=user_id,
            challenge_id=challenge.id,
            rest_date=rest_date,
        ))
        session.flush()
        recompute_and_persist_streak(session, user_id, today=today)
        remaining = rest_days_remaining(session, challenge)

    logger.info("Rest day %s claimed by user %d (%d left)", rest_date, user_id, remaining)
    return True, f"Rest day used. {remaining} remaining this week."
