"""
tests/test_reconciliation_service.py — Balance Reconciliation Tests
====================================================================
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from streakforge.database.models import User
from streakforge.services.reconciliation_service import reconcile_trophy_balances


def _set_balance(engine, user_id: int, value: int) -> None:
    with Session(engine) as session:
        session.get(User, user_id).trophies = value
        session.commit()


class TestReconcileTrophyBalances:
    def test_matching_balances_untouched(self, db_engine, make_user, upload_day):
        uid = make_user()
        upload_day(uid, "2024-01-01")

        result = reconcile_trophy_balances(db_engine)

        assert result["checked"] == 1
        assert result["corrected"] == 0
        assert result["corrections"] == []

    def test_drift_is_corrected_to_ledger_sum(self, db_engine, make_user, upload_day):
        uid = make_user()
        upload_day(uid, "2024-01-01")
        with Session(db_engine) as session:
            expected = session.get(User, uid).trophies
        _set_balance(db_engine, uid, 999)

        result = reconcile_trophy_balances(db_engine)

        assert result["corrected"] == 1
        assert result["corrections"][0] == {
            "user_id": uid, "stored": 999, "actual": expected, "diff": expected - 999,
        }
        with Session(db_engine) as session:
            assert session.get(User, uid).trophies == expected

    def test_balance_without_ledger_resets_to_zero(self, db_engine, make_user):
        uid = make_user(trophies=40)
        result = reconcile_trophy_balances(db_engine)
        assert result["corrected"] == 1
        with Session(db_engine) as session:
            assert session.get(User, uid).trophies == 0
