"""
streakforge.__main__ — Entry point for ``python -m streakforge``
================================================================

Runs the nightly sweep once and exits; schedule it from cron shortly
after midnight in the configured timezone.

Wiring:
1. Load .env (DATABASE_URL).
2. Load config.yaml (timezone, sweep toggle) and make its zone the
   process-wide default for "today".
3. Create the SQLAlchemy engine and ensure tables + settings exist.
4. Run the sweep for "today" in the configured timezone.

Run with::

    python -m streakforge            # once per day; repeat runs are no-ops
    python -m streakforge --force    # re-run even if today's sweep finished
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from streakforge.config import load_config
from streakforge.database.engine import create_db_engine, init_db
from streakforge.engine.dates import set_default_timezone, today_ymd
from streakforge.services.rollup_service import run_nightly_sweep

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("streakforge")


def main(argv: list[str] | None = None) -> int:
    """Bootstrap and run one nightly sweep.  Returns the process exit code."""
    parser = argparse.ArgumentParser(prog="streakforge")
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    parser.add_argument("--force", action="store_true", help="ignore the sweep watermark")
    args = parser.parse_args(argv)

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config(args.config)
    logger.info("Config loaded — App: %s (timezone %s)", cfg.app_name, cfg.timezone)
    set_default_timezone(cfg.timezone)
    if not cfg.sweep_enabled:
        logger.info("Nightly sweep disabled in config; nothing to do.")
        return 0

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Sweep.
    summary = run_nightly_sweep(engine, today=today_ymd(), force=args.force)
    if summary.get("errors"):
        logger.error("Sweep finished with %d user errors", len(summary["errors"]))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
