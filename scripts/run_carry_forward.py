#!/usr/bin/env python3
"""Year-end leave carry-forward — cron wrapper.

Run once after the leave year closes:
    5 0 1 1 *

Usage:
    python scripts/run_carry_forward.py                  # previous local year
    python scripts/run_carry_forward.py --from-year 2025
    python scripts/run_carry_forward.py --dry-run        # compute, then roll back

Requires .env at project root (DATABASE_URL, JWT_SECRET, TIMEZONE).
Re-running for the same year rewrites the same rows.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from hrms.common.clock import system_clock  # noqa: E402
from hrms.common.log_config import configure_logging  # noqa: E402
from hrms.database import async_session_factory, engine  # noqa: E402
from hrms.leave.carry_forward import CarryForwardProcessor  # noqa: E402

logger = logging.getLogger("run_carry_forward")


async def run(from_year: int, dry_run: bool) -> int:
    async with async_session_factory() as session:
        try:
            result = await CarryForwardProcessor.run(session, from_year)
            if dry_run:
                await session.rollback()
                logger.info("Dry run: changes rolled back")
            else:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
    await engine.dispose()
    return result.quotas_written


def main():
    parser = argparse.ArgumentParser(
        description="Carry unused leave of one year into the next",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Install in crontab:
    5 0 1 1 * cd /opt/hrms && /usr/bin/python3 scripts/run_carry_forward.py >> /var/log/carry-forward.log 2>&1
""",
    )
    parser.add_argument(
        "--from-year", type=int, default=None,
        help="Year whose balances are carried (default: previous local year)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Compute but don't commit")
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(args.log_level)
    from_year = args.from_year or system_clock.today().year - 1

    start_time = time.time()
    logger.info("Carry-forward %s → %s starting", from_year, from_year + 1)
    try:
        written = asyncio.run(run(from_year, args.dry_run))
    except Exception:
        logger.exception("Carry-forward %s failed", from_year)
        sys.exit(1)

    logger.info(
        "Carry-forward %s → %s complete: %d quota row(s) in %.1fs",
        from_year, from_year + 1, written, time.time() - start_time,
    )


if __name__ == "__main__":
    main()
