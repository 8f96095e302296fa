"""
tests/test_retention_service.py — Photo Retention Tests
========================================================
"""

from __future__ import annotations

from unittest.mock import MagicMock

from sqlalchemy import select
from sqlalchemy.orm import Session

from streakforge.database.models import Upload, WeeklyChallenge
from streakforge.engine.dates import add_days, date_range
from streakforge.engine.hooks import Collaborators
from streakforge.services.retention_service import purge_resolved_weeks
from streakforge.services.rollup_service import run_nightly_sweep
from streakforge.services.trophy_service import weekly_bonus_net


def _uploads(engine, user_id: int) -> list[Upload]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Upload).where(Upload.user_id == user_id).order_by(Upload.upload_date)
        ).all())


def _perfect_first_week(db_engine, make_user, upload_day) -> int:
    uid = make_user("2024-01-01")
    for day in date_range("2024-01-01", add_days("2024-01-01", 6)):
        upload_day(uid, day)
    run_nightly_sweep(db_engine, today="2024-01-08")
    return uid


class TestPurgeResolvedWeeks:
    def test_old_week_photos_released_rows_kept(self, db_engine, make_user, upload_day):
        uid = _perfect_first_week(db_engine, make_user, upload_day)
        photos = MagicMock()

        result = purge_resolved_weeks(
            db_engine, uid, today="2024-03-04", collaborators=Collaborators(photos=photos)
        )

        assert result == {"weeks": 1, "photos_released": 7, "files_deleted": 7}
        assert photos.delete.call_count == 7
        photos.delete.assert_any_call(f"/uploads/{uid}/2024-01-01.jpg")

        uploads = _uploads(db_engine, uid)
        assert len(uploads) == 7
        assert all(u.photo_path is None for u in uploads)
        assert all(u.verification_status == "approved" for u in uploads)

    def test_history_survives_release(self, db_engine, make_user, upload_day):
        uid = _perfect_first_week(db_engine, make_user, upload_day)
        purge_resolved_weeks(db_engine, uid, today="2024-03-04")
        with Session(db_engine) as session:
            week1 = session.scalar(
                select(WeeklyChallenge).where(
                    WeeklyChallenge.user_id == uid,
                    WeeklyChallenge.start_date == "2024-01-01",
                )
            )
            assert week1.status == "completed"
            assert weekly_bonus_net(session, week1.id) == 10

    def test_recent_weeks_untouched(self, db_engine, make_user, upload_day):
        uid = _perfect_first_week(db_engine, make_user, upload_day)
        result = purge_resolved_weeks(db_engine, uid, today="2024-02-01")
        assert result["photos_released"] == 0
        assert all(u.photo_path for u in _uploads(db_engine, uid))

    def test_unresolved_week_untouched(self, db_engine, make_user, upload_day):
        uid = make_user("2024-01-01")
        upload_day(uid, "2024-01-01", status=None)
        run_nightly_sweep(db_engine, today="2024-01-08")

        result = purge_resolved_weeks(db_engine, uid, today="2024-06-01")
        assert result == {"weeks": 0, "photos_released": 0, "files_deleted": 0}

    def test_store_failure_is_logged_not_raised(self, db_engine, make_user, upload_day):
        uid = _perfect_first_week(db_engine, make_user, upload_day)
        photos = MagicMock()
        photos.delete.side_effect = OSError("gone")

        result = purge_resolved_weeks(
            db_engine, uid, today="2024-03-04", collaborators=Collaborators(photos=photos)
        )
        assert result["photos_released"] == 7
        assert result["files_deleted"] == 0
        assert all(u.photo_path is None for u in _uploads(db_engine, uid))
