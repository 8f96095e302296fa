"""
streakforge.engine.hooks — Injected Collaborator Interfaces
============================================================

The reconciliation core triggers downstream systems it does not own:
user notifications, achievement checks, referral rewards, and the photo
store that holds upload images.
They are passed in as a :class:`Collaborators` bundle rather than
imported, so the services never depend on their implementations.

Every hook runs *after* the triggering transaction commits, and each
call is best effort: a failure is logged and never propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from streakforge.database.models import LedgerReason, UploadStatus
from streakforge.engine.trophies import describe_trophy_change

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------
class Notifier(Protocol):
    def notify(self, user_id: int, title: str, message: str) -> None: ...


class AchievementChecker(Protocol):
    def check(self, user_id: int) -> None: ...


class ReferralRewarder(Protocol):
    def on_upload_verified(
        self, user_id: int, upload_id: int, status: UploadStatus
    ) -> None: ...


class PhotoStore(Protocol):
    def delete(self, photo_path: str) -> None: ...


class NullNotifier:
    def notify(self, user_id: int, title: str, message: str) -> None:
        return None


class NullAchievementChecker:
    def check(self, user_id: int) -> None:
        return None


class NullReferralRewarder:
    def on_upload_verified(
        self, user_id: int, upload_id: int, status: UploadStatus
    ) -> None:
        return None


class NullPhotoStore:
    def delete(self, photo_path: str) -> None:
        return None


@dataclass(slots=True)
class Collaborators:
    """Downstream hooks handed to the services.  Defaults do nothing."""

    notifier: Notifier = field(default_factory=NullNotifier)
    achievements: AchievementChecker = field(default_factory=NullAchievementChecker)
    referrals: ReferralRewarder = field(default_factory=NullReferralRewarder)
    photos: PhotoStore = field(default_factory=NullPhotoStore)


# ---------------------------------------------------------------------------
# Trophy notices, collected inside a transaction, sent after commit
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TrophyNotice:
    user_id: int
    delta: int
    kind: LedgerReason


def send_trophy_notices(
    collaborators: Collaborators, notices: Iterable[TrophyNotice]
) -> int:
    """Deliver each notice through the notifier.  Returns how many were sent."""
    sent = 0
    for notice in notices:
        title, message = describe_trophy_change(notice.delta, notice.kind)
        try:
            collaborators.notifier.notify(notice.user_id, title, message)
            sent += 1
        except Exception:
            logger.exception(
                "Trophy notification failed for user %d (%+d, %s)",
                notice.user_id, notice.delta, notice.kind.value,
            )
    return sent
