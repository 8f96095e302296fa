"""
streakforge.config — YAML Configuration Loader
===============================================

**Why this file exists:**
This module reads ``config.yaml`` for **infrastructure-only** settings
(application identity, the fixed calendar timezone, sweep toggle).  All
gameplay tuning values (rest-day quotas, retention window) live in the
``settings`` database table, seeded by :mod:`streakforge.database.seed`.

Usage::

    from streakforge.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.timezone)          # "Europe/Belgrade"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml

from streakforge.constants import DEFAULT_TIMEZONE


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# Gameplay tuning lives in the DB ``settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class StreakforgeConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str

    # Calendar: every YYYY-MM-DD "today" is computed in this zone
    timezone: str = DEFAULT_TIMEZONE

    # Whether ``python -m streakforge`` should run the nightly sweep
    sweep_enabled: bool = True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> StreakforgeConfig:
    """Read *path* and return a :class:`StreakforgeConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``timezone`` is not a known IANA zone name.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    tz_name = str(raw.get("timezone") or DEFAULT_TIMEZONE)
    try:
        ZoneInfo(tz_name)
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unknown timezone in config: {tz_name!r}") from exc

    return StreakforgeConfig(
        app_name=raw["app_name"],
        timezone=tz_name,
        sweep_enabled=bool(raw.get("sweep_enabled", True)),
    )
