"""
streakforge — Reconciliation Engine for Weekly Photo Challenges
================================================================
Derives streaks, trophy balances, and weekly challenge outcomes from an
append-only evidence log of daily uploads and rest-day claims.  Moderation
is asynchronous and reversible, so every derived value is recomputed from
evidence or synced by diffing against the ledger — never bumped in place.

Package layout::

    streakforge/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Reward / penalty constants
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   ├── models.py      # All ORM models (7 tables)
    │   └── seed.py        # Default settings seeder
    ├── engine/
    │   ├── dates.py       # YYYY-MM-DD calendar arithmetic
    │   ├── streak.py      # Pure streak computation
    │   ├── week.py        # Pure weekly window + status rules
    │   ├── trophies.py    # Trophy arithmetic + ledger reason text
    │   └── hooks.py       # Injected collaborator interfaces
    └── services/
        ├── evidence_store.py       # Uploads, rest days, registration
        ├── settings_service.py     # Typed settings access
        ├── streak_service.py       # Recompute + persist, admin baseline
        ├── trophy_service.py       # Idempotent ledger sync + bonuses
        ├── challenge_service.py    # Weekly challenge evaluator
        ├── rollup_service.py       # Daily rollup + nightly sweep
        ├── verification_service.py # The moderation entry point
        ├── retention_service.py    # Old-week purge
        └── reconciliation_service.py # Balance vs. ledger audit
"""

__version__ = "0.1.0"
