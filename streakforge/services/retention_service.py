"""
streakforge.services.retention_service — Photo Evidence Retention
==================================================================

Releases the photos of old, fully-resolved weeks to save storage.

Only uploads that are

* in a ``completed`` or ``failed`` week whose window ended before the
  cutoff (``today - purge_after_weeks × 7``), and
* not ``pending`` (moderators may still need to see those)

are released.  The upload *rows* stay: streaks, week outcomes and
weekly bonuses are all re-derived from them, so dropping rows would
silently revoke history.  Releasing clears ``photo_path`` and hands the
old paths to the injected photo store after commit.

Best effort: callers log failures and carry on.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select

from streakforge.constants import DEFAULT_PURGE_AFTER_WEEKS, WEEK_LENGTH_DAYS
from streakforge.database.engine import get_session
from streakforge.database.models import (
    ChallengeStatus,
    Upload,
    UploadStatus,
    WeeklyChallenge,
)
from streakforge.engine.dates import add_days, today_ymd
from streakforge.engine.hooks import Collaborators
from streakforge.services.settings_service import get_int

logger = logging.getLogger(__name__)


def purge_resolved_weeks(
    engine: Engine,
    user_id: int,
    *,
    today: str | None = None,
    collaborators: Collaborators | None = None,
) -> dict[str, int]:
    """Release photos of finalized weeks older than the retention window.

    Returns ``{"weeks": W, "photos_released": N, "files_deleted": M}``.
    """
    today = today or today_ymd()
    collaborators = collaborators or Collaborators()
    released: list[str] = []

    with get_session(engine) as session:
        weeks = get_int(session, "retention.purge_after_weeks", DEFAULT_PURGE_AFTER_WEEKS)
        cutoff = add_days(today, -weeks * WEEK_LENGTH_DAYS)

        resolved = session.scalars(
            select(WeeklyChallenge).where(
                WeeklyChallenge.user_id == user_id,
                WeeklyChallenge.status.in_([
                    ChallengeStatus.COMPLETED.value,
                    ChallengeStatus.FAILED.value,
                ]),
                WeeklyChallenge.end_date < cutoff,
            )
        ).all()

        for week in resolved:
            uploads = session.scalars(
                select(Upload).where(
                    Upload.user_id == user_id,
                    Upload.upload_date >= week.start_date,
                    Upload.upload_date <= week.end_date,
                    Upload.verification_status != UploadStatus.PENDING.value,
                    Upload.photo_path.is_not(None),
                )
            ).all()
            for upload in uploads:
                released.append(upload.photo_path)
                upload.photo_path = None

    # --- Delete files only after the rows are committed ---
    files_deleted = 0
    for path in released:
        try:
            collaborators.photos.delete(path)
            files_deleted += 1
        except Exception:
            logger.exception("Retention: failed to delete photo %s", path)

    if released:
        logger.info(
            "Retention: user %d released %d photos from %d weeks (cutoff %s)",
            user_id, len(released), len(resolved), cutoff,
        )
    return {
        "weeks": len(resolved),
        "photos_released": len(released),
        "files_deleted": files_deleted,
    }
