"""
streakforge.services.evidence_store — Evidence Reads
=====================================================

Read access to the append-only evidence: daily uploads, rest-day claims,
and each user's registration date.  Every function takes an open
:class:`~sqlalchemy.orm.Session` so callers compose them inside their own
unit of work.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from streakforge.database.models import (
    RestDay,
    Upload,
    UploadStatus,
    User,
    WeeklyChallenge,
)
from streakforge.engine.week import WeekTally, tally_week


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
def get_user(session: Session, user_id: int) -> User:
    """Fetch a user or raise :class:`LookupError`."""
    user = session.get(User, user_id)
    if user is None:
        raise LookupError(f"User {user_id} not found")
    return user


def get_registration_date(session: Session, user_id: int) -> str:
    """The YYYY-MM-DD date that anchors the user's week windows."""
    return get_user(session, user_id).registration_date


def list_user_ids(session: Session) -> list[int]:
    return list(session.scalars(select(User.id).order_by(User.id)).all())


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------
def list_uploads(
    session: Session,
    user_id: int,
    *,
    status: UploadStatus | None = None,
    start: str | None = None,
    end: str | None = None,
) -> list[Upload]:
    """Uploads for *user_id*, oldest first.

    Parameters
    ----------
    status : only uploads in this moderation state
    start, end : inclusive ``YYYY-MM-DD`` bounds on ``upload_date``
    """
    q = select(Upload).where(Upload.user_id == user_id)
    if status is not None:
        q = q.where(Upload.verification_status == status.value)
    if start is not None:
        q = q.where(Upload.upload_date >= start)
    if end is not None:
        q = q.where(Upload.upload_date <= end)
    return list(session.scalars(q.order_by(Upload.upload_date)).all())


def latest_upload_date(
    session: Session, user_id: int, status: UploadStatus
) -> str | None:
    return session.scalar(
        select(func.max(Upload.upload_date)).where(
            Upload.user_id == user_id,
            Upload.verification_status == status.value,
        )
    )


def upload_on(session: Session, user_id: int, date_ymd: str) -> Upload | None:
    return session.scalar(
        select(Upload).where(Upload.user_id == user_id, Upload.upload_date == date_ymd)
    )


# ---------------------------------------------------------------------------
# Rest days
# ---------------------------------------------------------------------------
def list_rest_days(
    session: Session,
    *,
    user_id: int | None = None,
    challenge_id: int | None = None,
    start: str | None = None,
    end: str | None = None,
) -> list[str]:
    """Rest-day dates for a user or for one challenge, oldest first."""
    if user_id is None and challenge_id is None:
        raise ValueError("list_rest_days needs user_id or challenge_id")
    q = select(RestDay.rest_date)
    if user_id is not None:
        q = q.where(RestDay.user_id == user_id)
    if challenge_id is not None:
        q = q.where(RestDay.challenge_id == challenge_id)
    if start is not None:
        q = q.where(RestDay.rest_date >= start)
    if end is not None:
        q = q.where(RestDay.rest_date <= end)
    return list(session.scalars(q.order_by(RestDay.rest_date)).all())


# ---------------------------------------------------------------------------
# Weekly windows
# ---------------------------------------------------------------------------
def load_week_tally(session: Session, challenge: WeeklyChallenge) -> WeekTally:
    """Tally every upload and rest day in *challenge*'s date window."""
    uploads = list_uploads(
        session, challenge.user_id, start=challenge.start_date, end=challenge.end_date
    )
    rest_dates = list_rest_days(
        session,
        user_id=challenge.user_id,
        start=challenge.start_date,
        end=challenge.end_date,
    )
    return tally_week(
        challenge.start_date,
        challenge.end_date,
        {u.upload_date: u.status for u in uploads},
        rest_dates,
    )
