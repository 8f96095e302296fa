"""
streakforge.services.reconciliation_service — Balance Reconciliation
=====================================================================

Audit job that validates ``users.trophies`` against the
``trophy_transactions`` ledger and corrects drift if found.

How it works:
    1. ``SUM(delta)`` from the ledger grouped by user_id.
    2. Compare against each user's stored balance.
    3. On mismatch, overwrite the balance with the ledger sum.
    4. Log all corrections for audit.

The ledger is the source of truth: every balance change is written in
the same SAVEPOINT as its ledger row, so a mismatch means something
wrote the balance column directly.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, func, select

from streakforge.database.engine import get_session
from streakforge.database.models import TrophyTransaction, User

logger = logging.getLogger(__name__)


def reconcile_trophy_balances(engine: Engine) -> dict:
    """Validate stored balances against the ledger and fix drift.

    Returns ``{"checked": N, "corrected": M, "corrections": [...], "timestamp": ...}``.
    """
    corrections: list[dict] = []

    with get_session(engine) as session:
        ledger_rows = session.execute(
            select(
                TrophyTransaction.user_id,
                func.sum(TrophyTransaction.delta).label("net"),
            )
            .group_by(TrophyTransaction.user_id)
        ).all()
        ledger_map: dict[int, int] = {row.user_id: row.net for row in ledger_rows}

        users = session.scalars(select(User).order_by(User.id)).all()
        checked = 0
        for user in users:
            checked += 1
            actual = max(ledger_map.get(user.id, 0), 0)
            stored = user.trophies or 0
            if stored != actual:
                corrections.append({
                    "user_id": user.id,
                    "stored": stored,
                    "actual": actual,
                    "diff": actual - stored,
                })
                user.trophies = actual

    if corrections:
        logger.warning(
            "Trophy reconciliation: corrected %d/%d balances: %s",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Trophy reconciliation: all %d balances match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }
