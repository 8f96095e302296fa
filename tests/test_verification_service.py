"""
tests/test_verification_service.py — Verification Entry Point Tests
====================================================================

Covers evidence creation, moderation, rest-day claims, the
on-verification reconciliation, and best-effort downstream hooks.
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from streakforge.database.models import (
    RestDay,
    StreakState,
    TrophyTransaction,
    Upload,
    UploadStatus,
    User,
    WeeklyChallenge,
)
from streakforge.engine.hooks import Collaborators
from streakforge.engine.trophies import base_trophies_for_upload
from streakforge.services.verification_service import (
    on_verification_changed,
    record_upload,
    use_rest_day,
    verify_upload,
)


def _collaborators() -> Collaborators:
    return Collaborators(
        notifier=MagicMock(),
        achievements=MagicMock(),
        referrals=MagicMock(),
        photos=MagicMock(),
    )


def _balance(engine, user_id: int) -> int:
    with Session(engine) as session:
        return session.get(User, user_id).trophies


def _ledger_count(engine, user_id: int) -> int:
    with Session(engine) as session:
        return len(session.scalars(
            select(TrophyTransaction).where(TrophyTransaction.user_id == user_id)
        ).all())


# ---------------------------------------------------------------------------
# record_upload
# ---------------------------------------------------------------------------
class TestRecordUpload:
    def test_new_upload_is_pending_and_attached_to_week(self, db_engine, make_user):
        uid = make_user("2024-01-01")
        ok, message, upload_id = record_upload(
            db_engine, uid, "/p.jpg", upload_date="2024-01-03", today="2024-01-03"
        )
        assert ok, message
        with Session(db_engine) as session:
            upload = session.get(Upload, upload_id)
            week = session.get(WeeklyChallenge, upload.challenge_id)
            assert upload.status is UploadStatus.PENDING
            assert week.start_date == "2024-01-01"
        # Pending evidence never touches trophies
        assert _balance(db_engine, uid) == 0

    def test_duplicate_date_refused(self, db_engine, make_user, upload_day):
        uid = make_user()
        upload_day(uid, "2024-01-02")
        ok, message, upload_id = record_upload(
            db_engine, uid, upload_date="2024-01-02", today="2024-01-02"
        )
        assert (ok, message, upload_id) == (False, "Already uploaded for this date", None)

    def test_future_date_refused(self, db_engine, make_user):
        uid = make_user()
        ok, message, _ = record_upload(
            db_engine, uid, upload_date="2024-01-05", today="2024-01-04"
        )
        assert not ok
        assert message == "Cannot upload for a future date"

    def test_bad_date_and_unknown_user(self, db_engine, make_user):
        uid = make_user()
        assert record_upload(db_engine, uid, upload_date="2024-13-01", today="2024-01-04")[:2] == (
            False, "Invalid date",
        )
        assert record_upload(db_engine, 999, today="2024-01-04")[:2] == (False, "User not found")


# ---------------------------------------------------------------------------
# verify_upload
# ---------------------------------------------------------------------------
class TestVerifyUpload:
    def test_approval_runs_every_hook(self, db_engine, make_user):
        uid = make_user()
        _, _, upload_id = record_upload(db_engine, uid, upload_date="2024-01-01", today="2024-01-01")
        collab = _collaborators()

        ok, message = verify_upload(
            db_engine, upload_id, "approved", 7, today="2024-01-01", collaborators=collab
        )

        assert (ok, message) == (True, "Upload approved")
        collab.notifier.notify.assert_called_once()
        assert collab.notifier.notify.call_args.args[0] == uid
        collab.achievements.check.assert_called_once_with(uid)
        collab.referrals.on_upload_verified.assert_called_once_with(
            uid, upload_id, UploadStatus.APPROVED
        )
        with Session(db_engine) as session:
            upload = session.get(Upload, upload_id)
            assert upload.verified_by == 7
            assert upload.verified_at is not None
            assert session.get(StreakState, uid).current_streak == 1

    def test_failing_hooks_do_not_undo_verification(self, db_engine, make_user):
        uid = make_user()
        _, _, upload_id = record_upload(db_engine, uid, upload_date="2024-01-01", today="2024-01-01")
        collab = _collaborators()
        collab.notifier.notify.side_effect = RuntimeError("smtp down")
        collab.achievements.check.side_effect = RuntimeError("boom")
        collab.referrals.on_upload_verified.side_effect = RuntimeError("boom")

        ok, _ = verify_upload(
            db_engine, upload_id, "approved", 7, today="2024-01-01", collaborators=collab
        )

        assert ok
        assert _balance(db_engine, uid) == base_trophies_for_upload(upload_id)

    def test_back_to_pending_clears_verifier(self, db_engine, make_user, upload_day):
        uid = make_user()
        upload_id = upload_day(uid, "2024-01-01")
        ok, message = verify_upload(db_engine, upload_id, "pending", 7, today="2024-01-01")
        assert (ok, message) == (True, "Upload pending")
        with Session(db_engine) as session:
            upload = session.get(Upload, upload_id)
            assert upload.verified_by is None
            assert upload.verified_at is None
        assert _balance(db_engine, uid) == 0

    def test_invalid_status(self, db_engine, make_user, upload_day):
        uid = make_user()
        upload_id = upload_day(uid, "2024-01-01", status=None)
        ok, message = verify_upload(db_engine, upload_id, "maybe", 7, today="2024-01-01")
        assert not ok
        assert message.startswith("Invalid status")

    def test_unknown_upload(self, db_engine):
        assert verify_upload(db_engine, 404, "approved", 7, today="2024-01-01") == (
            False, "Upload not found",
        )


# ---------------------------------------------------------------------------
# on_verification_changed
# ---------------------------------------------------------------------------
class TestOnVerificationChanged:
    def test_repeat_calls_change_nothing(self, db_engine, make_user, upload_day):
        uid = make_user()
        upload_id = upload_day(uid, "2024-01-01")
        balance = _balance(db_engine, uid)
        rows = _ledger_count(db_engine, uid)

        for _ in range(3):
            summary = on_verification_changed(
                db_engine, upload_id, uid, None, UploadStatus.APPROVED, today="2024-01-01"
            )
            assert summary["trophy_delta"] == 0
            assert summary["current_streak"] == 1

        assert _balance(db_engine, uid) == balance
        assert _ledger_count(db_engine, uid) == rows

    def test_stored_status_wins(self, db_engine, make_user, upload_day):
        uid = make_user()
        upload_id = upload_day(uid, "2024-01-01")
        summary = on_verification_changed(
            db_engine, upload_id, uid, None, UploadStatus.REJECTED, today="2024-01-01"
        )
        assert summary["status"] == "approved"
        assert _balance(db_engine, uid) == base_trophies_for_upload(upload_id)

    def test_unknown_upload_raises(self, db_engine):
        with pytest.raises(LookupError):
            on_verification_changed(db_engine, 404, 1, None, UploadStatus.APPROVED)


# ---------------------------------------------------------------------------
# use_rest_day
# ---------------------------------------------------------------------------
class TestUseRestDay:
    def test_quota_is_enforced(self, db_engine, make_user):
        uid = make_user("2024-01-01")
        for day, left in (("2024-01-01", 2), ("2024-01-02", 1), ("2024-01-03", 0)):
            ok, message = use_rest_day(db_engine, uid, rest_date=day, today="2024-01-04")
            assert ok, message
            assert message == f"Rest day used. {left} remaining this week."

        ok, message = use_rest_day(db_engine, uid, rest_date="2024-01-04", today="2024-01-04")
        assert (ok, message) == (False, "No rest days remaining this week")
        with Session(db_engine) as session:
            assert len(session.scalars(select(RestDay)).all()) == 3

    def test_refusals(self, db_engine, make_user, upload_day):
        uid = make_user("2024-01-01")
        upload_day(uid, "2024-01-02")
        ok, _ = use_rest_day(db_engine, uid, rest_date="2024-01-03", today="2024-01-03")
        assert ok

        cases = {
            "2024-01-05": "Cannot claim a rest day in the future",
            "2024-01-02": "You already uploaded for this day",
            "2024-01-03": "Rest day already used for this date",
        }
        for day, expected in cases.items():
            assert use_rest_day(db_engine, uid, rest_date=day, today="2024-01-04") == (
                False, expected,
            )

    def test_date_outside_week(self, db_engine, make_user):
        uid = make_user("2024-01-01")
        ok, message = use_rest_day(db_engine, uid, rest_date="2023-12-31", today="2024-01-02")
        assert (ok, message) == (False, "Date is outside this week")

    def test_closed_week(self, db_engine, make_user):
        uid = make_user("2024-01-01")
        use_rest_day(db_engine, uid, rest_date="2024-01-01", today="2024-01-01")
        with Session(db_engine) as session:
            week1 = session.scalar(select(WeeklyChallenge.id).where(WeeklyChallenge.user_id == uid))
        # Opening the next week closes the first one
        record_upload(db_engine, uid, upload_date="2024-01-08", today="2024-01-08")

        ok, message = use_rest_day(
            db_engine, uid, week1, rest_date="2024-01-02", today="2024-01-08"
        )
        assert (ok, message) == (False, "This week is already closed")

    def test_foreign_challenge(self, db_engine, make_user):
        owner = make_user("2024-01-01")
        other = make_user("2024-01-01")
        use_rest_day(db_engine, owner, rest_date="2024-01-01", today="2024-01-01")
        with Session(db_engine) as session:
            week = session.scalar(select(WeeklyChallenge.id).where(WeeklyChallenge.user_id == owner))
        assert use_rest_day(db_engine, other, week, today="2024-01-02") == (
            False, "Challenge not found",
        )

    def test_rest_day_blocks_later_upload(self, db_engine, make_user):
        uid = make_user("2024-01-01")
        use_rest_day(db_engine, uid, rest_date="2024-01-01", today="2024-01-01")
        ok, message, _ = record_upload(db_engine, uid, upload_date="2024-01-01", today="2024-01-01")
        assert (ok, message) == (False, "Rest day already claimed for this date")


# ---------------------------------------------------------------------------
# Configured timezone
# ---------------------------------------------------------------------------
class TestConfiguredTimezone:
    NOON_UTC = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def _pin_clock(self):
        clock = MagicMock(wraps=datetime)
        clock.now.side_effect = lambda tz=None: self.NOON_UTC.astimezone(tz)
        return patch("streakforge.engine.dates.datetime", clock)

    def test_default_today_follows_configured_zone(
        self, db_engine, make_user, configured_timezone
    ):
        """Noon UTC on Jan 1 is already Jan 2 in Kiritimati."""
        uid = make_user("2024-01-01")
        with self._pin_clock():
            ok, message, _ = record_upload(db_engine, uid, upload_date="2024-01-02")
            assert (ok, message) == (False, "Cannot upload for a future date")

            configured_timezone("Pacific/Kiritimati")
            ok, message, _ = record_upload(db_engine, uid, upload_date="2024-01-02")
            assert ok, message
            ok, message = use_rest_day(db_engine, uid, rest_date="2024-01-01")
            assert ok, message
