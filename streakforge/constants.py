"""
streakforge.constants — Shared Constants
=========================================

Single source of truth for the fixed reward rules.  Tunable quotas
(rest days, retention) are settings rows, not constants.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------
DEFAULT_TIMEZONE = "Europe/Belgrade"
WEEK_LENGTH_DAYS = 7

# ---------------------------------------------------------------------------
# Upload rewards: base is 26..32, deterministic per upload id
# ---------------------------------------------------------------------------
BASE_TROPHY_MIN = 26
BASE_TROPHY_RANGE = 7
REJECTION_PENALTY_MULTIPLIER = 2

# ---------------------------------------------------------------------------
# Weekly challenge
# ---------------------------------------------------------------------------
COMPLETION_THRESHOLD_DAYS = 5
PERFECT_WEEK_DAYS = 7
WEEKLY_BONUS_PER_WEEK = 10
WEEKLY_BONUS_CAP = 70

# ---------------------------------------------------------------------------
# Rest days (fallbacks when the settings rows are missing)
# ---------------------------------------------------------------------------
DEFAULT_REST_DAYS_STANDARD = 3
DEFAULT_REST_DAYS_PREMIUM = 5

# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------
DEFAULT_PURGE_AFTER_WEEKS = 8
