"""
streakforge.engine.streak — Pure Streak Computation
====================================================

No DB I/O inside the engine: callers gather the evidence, this module
derives the streak from scratch every time.

Pipeline:
  valid dates → longest run + trailing run → recency check
              → admin baseline extension → rejection override → longest floor

Valid dates are days with an approved upload or a rest-day claim.  Pending
and rejected uploads never enter that set; the latest rejected date is
passed separately because it can break a streak.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from streakforge.engine.dates import add_days, diff_days, yesterday_ymd

__all__ = [
    "StreakBaseline",
    "StreakView",
    "compute_streak",
    "extend_baseline",
    "longest_run",
    "trailing_run",
]


@dataclass(frozen=True, slots=True)
class StreakBaseline:
    """Administrator-set floor: ``streak`` days as of ``anchor_date``."""

    anchor_date: str | None = None
    streak: int = 0
    longest: int = 0

    @property
    def is_set(self) -> bool:
        return self.streak > 0 and self.anchor_date is not None


@dataclass(frozen=True, slots=True)
class StreakView:
    """Result of a streak computation."""

    current_streak: int
    longest_streak: int
    last_activity_date: str | None
    # Trace info
    approved_uploads: int = 0
    baseline_applied: bool = False
    broken_by_rejection: bool = False


# ---------------------------------------------------------------------------
# Run helpers
# ---------------------------------------------------------------------------
def longest_run(dates: Sequence[str]) -> int:
    """Longest run of consecutive days in sorted, de-duplicated *dates*."""
    if not dates:
        return 0
    best = run = 1
    for prev, cur in zip(dates, dates[1:]):
        if diff_days(cur, prev) == 1:
            run += 1
            best = max(best, run)
        else:
            run = 1
    return best


def trailing_run(dates: Sequence[str]) -> int:
    """Length of the consecutive run ending at the last element of *dates*."""
    if not dates:
        return 0
    run = 1
    for i in range(len(dates) - 1, 0, -1):
        if diff_days(dates[i], dates[i - 1]) != 1:
            break
        run += 1
    return run


def extend_baseline(baseline: StreakBaseline, valid: set[str]) -> tuple[str, int]:
    """Walk forward from the anchor through consecutive valid days.

    Returns ``(end_date, extended_streak)``.
    """
    assert baseline.anchor_date is not None
    extension = 0
    check = add_days(baseline.anchor_date, 1)
    while check in valid:
        extension += 1
        check = add_days(check, 1)
    return add_days(baseline.anchor_date, extension), baseline.streak + extension


# ---------------------------------------------------------------------------
# Full computation
# ---------------------------------------------------------------------------
def compute_streak(
    valid_dates: Iterable[str],
    *,
    today: str,
    latest_rejected: str | None = None,
    baseline: StreakBaseline | None = None,
    stored_longest: int = 0,
    approved_uploads: int = 0,
) -> StreakView:
    """Derive current/longest streak from the full evidence set.

    This is a PURE function: same inputs, same output.

    Parameters
    ----------
    valid_dates : approved-upload dates and rest-day dates (any order, dupes ok)
    today : today's date in the fixed timezone
    latest_rejected : most recent date with a rejected upload, if any
    baseline : admin baseline floor, if one is set
    stored_longest : the persisted longest streak (longest never decreases)
    approved_uploads : count carried through for tracing only
    """
    yesterday = yesterday_ymd(today)
    dates = sorted(set(valid_dates))
    valid = set(dates)

    computed_longest = longest_run(dates)
    last_activity: str | None = dates[-1] if dates else None
    current = 0
    if last_activity is not None and last_activity >= yesterday:
        current = trailing_run(dates)

    baseline_applied = False
    if baseline is not None and baseline.is_set:
        ext_end, ext_streak = extend_baseline(baseline, valid)
        recent = ext_end >= yesterday
        not_older = last_activity is None or ext_end >= last_activity
        if recent and not_older and ext_streak > current:
            current = ext_streak
            last_activity = ext_end
            baseline_applied = True

    # A rejection on or after the effective end date breaks the streak,
    # baseline included.  Ties go to the rejection.
    broken = False
    if latest_rejected is not None and latest_rejected >= yesterday:
        if last_activity is None or latest_rejected >= last_activity:
            current = 0
            last_activity = latest_rejected
            baseline_applied = False
            broken = True

    longest = max(
        stored_longest,
        computed_longest,
        current,
        baseline.longest if baseline is not None else 0,
    )

    return StreakView(
        current_streak=current,
        longest_streak=longest,
        last_activity_date=last_activity,
        approved_uploads=approved_uploads,
        baseline_applied=baseline_applied,
        broken_by_rejection=broken,
    )
