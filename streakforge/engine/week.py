"""
streakforge.engine.week — Weekly Window & Status Decision
==========================================================

Pure helpers for the weekly challenge:

* window math — every week starts at ``registration_date + 7×k``;
* tallying — fold one week's uploads and rest days into per-day entries;
* status decision — pending wins, then the completion threshold.

No DB I/O: services load the evidence and hand it in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from streakforge.constants import (
    COMPLETION_THRESHOLD_DAYS,
    PERFECT_WEEK_DAYS,
    WEEK_LENGTH_DAYS,
)
from streakforge.database.models import ChallengeStatus, UploadStatus
from streakforge.engine.dates import add_days, date_range, diff_days

__all__ = [
    "DayEntry",
    "WeekTally",
    "decide_status",
    "tally_week",
    "week_end_for",
    "week_start_for",
]


# ---------------------------------------------------------------------------
# Window math
# ---------------------------------------------------------------------------
def week_start_for(registration_date: str, today: str) -> str:
    """Start of the 7-day window containing *today*.

    Days before registration fall into week 0.
    """
    elapsed = max(diff_days(today, registration_date), 0)
    weeks = elapsed // WEEK_LENGTH_DAYS
    return add_days(registration_date, weeks * WEEK_LENGTH_DAYS)


def week_end_for(start_date: str) -> str:
    return add_days(start_date, WEEK_LENGTH_DAYS - 1)


# ---------------------------------------------------------------------------
# Tally
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class DayEntry:
    """One calendar day of a week."""

    date: str
    upload_status: UploadStatus | None = None
    rest_day: bool = False

    @property
    def counts(self) -> bool:
        """An approved upload, or a rest day on a day with no upload at all."""
        if self.upload_status is UploadStatus.APPROVED:
            return True
        return self.rest_day and self.upload_status is None


@dataclass(slots=True)
class WeekTally:
    """Evidence counts for one weekly window."""

    start_date: str
    end_date: str
    days: list[DayEntry] = field(default_factory=list)

    @property
    def completed_days(self) -> int:
        return sum(1 for d in self.days if d.counts)

    @property
    def approved(self) -> int:
        return sum(1 for d in self.days if d.upload_status is UploadStatus.APPROVED)

    @property
    def pending(self) -> int:
        return sum(1 for d in self.days if d.upload_status is UploadStatus.PENDING)

    @property
    def rejected(self) -> int:
        return sum(1 for d in self.days if d.upload_status is UploadStatus.REJECTED)

    @property
    def rest_days(self) -> int:
        return sum(1 for d in self.days if d.rest_day and d.upload_status is None)

    @property
    def is_perfect(self) -> bool:
        return self.completed_days >= PERFECT_WEEK_DAYS and self.pending == 0


def tally_week(
    start_date: str,
    end_date: str,
    uploads: Mapping[str, UploadStatus],
    rest_dates: Iterable[str],
) -> WeekTally:
    """Fold evidence into a :class:`WeekTally`.

    *uploads* maps date → status; dates outside the window are ignored.
    """
    rest = set(rest_dates)
    tally = WeekTally(start_date=start_date, end_date=end_date)
    for day in date_range(start_date, end_date):
        tally.days.append(DayEntry(
            date=day,
            upload_status=uploads.get(day),
            rest_day=day in rest,
        ))
    return tally


# ---------------------------------------------------------------------------
# Status decision
# ---------------------------------------------------------------------------
def decide_status(tally: WeekTally) -> ChallengeStatus:
    """Pending evidence blocks finalization; otherwise ≥5 valid days passes."""
    if tally.pending > 0:
        return ChallengeStatus.PENDING_EVALUATION
    if tally.completed_days >= COMPLETION_THRESHOLD_DAYS:
        return ChallengeStatus.COMPLETED
    return ChallengeStatus.FAILED
