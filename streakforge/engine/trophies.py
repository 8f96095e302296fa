"""
streakforge.engine.trophies — Trophy Arithmetic & Reason Rendering
===================================================================

Pure calculations shared by the ledger services:

* upload reward/penalty targets (deterministic per upload id),
* missed-day penalty (deterministic per user + date hash),
* weekly bonus magnitude,
* rendering structured ledger reasons to audit text and back,
* the notification text shown to a user for an applied delta.

The rendered audit text is for reports only.  Control decisions read
the structured ``reason_kind`` / ``upload_id`` / ``challenge_id`` /
``reason_date`` columns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from streakforge.constants import (
    BASE_TROPHY_MIN,
    BASE_TROPHY_RANGE,
    REJECTION_PENALTY_MULTIPLIER,
    WEEKLY_BONUS_CAP,
    WEEKLY_BONUS_PER_WEEK,
)
from streakforge.database.models import LedgerReason, UploadStatus

__all__ = [
    "ParsedReason",
    "base_trophies_for_upload",
    "describe_trophy_change",
    "format_reason",
    "hash_user_date",
    "missed_day_base",
    "missed_day_penalty",
    "parse_reason",
    "trophies_for_status",
    "weekly_bonus_for",
]

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619
_UINT32 = 0xFFFFFFFF


# ---------------------------------------------------------------------------
# Upload rewards
# ---------------------------------------------------------------------------
def base_trophies_for_upload(upload_id: int) -> int:
    """26..32, fixed per upload so re-evaluation can never re-roll it."""
    return BASE_TROPHY_MIN + (upload_id % BASE_TROPHY_RANGE)


def trophies_for_status(upload_id: int, status: UploadStatus) -> int:
    """Target ledger net for one upload in *status*."""
    base = base_trophies_for_upload(upload_id)
    if status is UploadStatus.APPROVED:
        return base
    if status is UploadStatus.REJECTED:
        return -REJECTION_PENALTY_MULTIPLIER * base
    return 0


# ---------------------------------------------------------------------------
# Missed days
# ---------------------------------------------------------------------------
def hash_user_date(user_id: int, date_ymd: str) -> int:
    """32-bit FNV-1a hash of ``"<user_id>:<date>"``."""
    h = _FNV_OFFSET
    for ch in f"{user_id}:{date_ymd}":
        h ^= ord(ch)
        h = (h * _FNV_PRIME) & _UINT32
    return h


def missed_day_base(user_id: int, date_ymd: str) -> int:
    return BASE_TROPHY_MIN + (hash_user_date(user_id, date_ymd) % BASE_TROPHY_RANGE)


def missed_day_penalty(user_id: int, date_ymd: str) -> int:
    """Negative half of the day's base, halves rounded up (27 → -14)."""
    return -((missed_day_base(user_id, date_ymd) + 1) // 2)


# ---------------------------------------------------------------------------
# Weekly bonus
# ---------------------------------------------------------------------------
def weekly_bonus_for(consecutive_perfect_weeks: int) -> int:
    if consecutive_perfect_weeks <= 0:
        return 0
    return min(WEEKLY_BONUS_PER_WEEK * consecutive_perfect_weeks, WEEKLY_BONUS_CAP)


# ---------------------------------------------------------------------------
# Reason rendering (reporting only)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ParsedReason:
    kind: LedgerReason
    challenge_id: int | None = None
    reason_date: str | None = None


_UPLOAD_REASON_TEXT = {
    LedgerReason.UPLOAD_APPROVED: "sync:approved",
    LedgerReason.UPLOAD_REJECTED: "sync:rejected",
    LedgerReason.UPLOAD_PENDING: "sync:pending",
}
_UPLOAD_TEXT_REASON = {v: k for k, v in _UPLOAD_REASON_TEXT.items()}

_MISSED_RE = re.compile(r"^missed:(\d{4}-\d{2}-\d{2})$")
_BONUS_RE = re.compile(r"^weekly_bonus:challenge_(\d+):(perfect|revoked)$")


def format_reason(
    kind: LedgerReason,
    *,
    challenge_id: int | None = None,
    reason_date: str | None = None,
) -> str:
    """Render a structured reason as its audit-log text."""
    if kind in _UPLOAD_REASON_TEXT:
        return _UPLOAD_REASON_TEXT[kind]
    if kind is LedgerReason.MISSED_DAY:
        return f"missed:{reason_date}"
    if kind is LedgerReason.WEEKLY_BONUS:
        return f"weekly_bonus:challenge_{challenge_id}:perfect"
    if kind is LedgerReason.WEEKLY_BONUS_REVOKED:
        return f"weekly_bonus:challenge_{challenge_id}:revoked"
    return "admin_set"


def parse_reason(text: str) -> ParsedReason:
    """Inverse of :func:`format_reason`.

    Raises
    ------
    ValueError
        If *text* is not a recognised audit reason.
    """
    if text in _UPLOAD_TEXT_REASON:
        return ParsedReason(kind=_UPLOAD_TEXT_REASON[text])
    if text == "admin_set":
        return ParsedReason(kind=LedgerReason.ADMIN_SET)
    m = _MISSED_RE.match(text)
    if m:
        return ParsedReason(kind=LedgerReason.MISSED_DAY, reason_date=m.group(1))
    m = _BONUS_RE.match(text)
    if m:
        kind = (
            LedgerReason.WEEKLY_BONUS if m.group(2) == "perfect"
            else LedgerReason.WEEKLY_BONUS_REVOKED
        )
        return ParsedReason(kind=kind, challenge_id=int(m.group(1)))
    raise ValueError(f"Unrecognised ledger reason: {text!r}")


# ---------------------------------------------------------------------------
# Notification text
# ---------------------------------------------------------------------------
_REASON_SUFFIX = {
    LedgerReason.UPLOAD_APPROVED: " Your upload was approved.",
    LedgerReason.UPLOAD_REJECTED: " Your upload was rejected.",
    LedgerReason.MISSED_DAY: " You missed a day.",
    LedgerReason.WEEKLY_BONUS: " Perfect week bonus awarded.",
    LedgerReason.WEEKLY_BONUS_REVOKED: " Weekly bonus revoked.",
    LedgerReason.ADMIN_SET: " Your trophies were adjusted by an admin.",
}


def describe_trophy_change(applied_delta: int, kind: LedgerReason) -> tuple[str, str]:
    """Return ``(title, message)`` for a user-facing trophy notification."""
    sign = "+" if applied_delta > 0 else ""
    title = f"🏆 {sign}{applied_delta} Trophies"
    verb = "earned" if applied_delta > 0 else "lost"
    message = f"You {verb} {abs(applied_delta)} trophies." + _REASON_SUFFIX.get(kind, "")
    return title, message
