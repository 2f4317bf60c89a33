#!/usr/bin/env python3
"""
Week-boundary rollover for cron.

Moves each user's unfinished tasks from last week into the week containing
--date (today by default) and re-instances their recurring tasks. Exits 1 if
any task failed so the scheduler can alert and retry.
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import date

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weekboard import database
from weekboard.core.exceptions import PartialBatchFailure
from weekboard.repositories.store import SqlWeeklyTaskStore
from weekboard.services.jobs import run_rollover
from weekboard.services.week import current_week

logger = logging.getLogger("run_rollover")


async def main() -> int:
    parser = argparse.ArgumentParser(description="Roll last week's tasks into the current week")
    parser.add_argument("--user-id", action="append", required=True, help="User to roll over (repeatable)")
    parser.add_argument("--date", default=None, help="Any day of the target week (YYYY-MM-DD), default today")
    parser.add_argument("--concurrency", type=int, default=None, help="Tasks processed at once per user")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    to_week = current_week(args.date or date.today())
    from_week = to_week.previous()

    await database.init_db(args.database_url)
    try:
        store = SqlWeeklyTaskStore(database.async_session_maker)
        summaries = await run_rollover(store, args.user_id, from_week, to_week, args.concurrency)
    finally:
        await database.close_db()

    exit_code = 0
    for user_id, summary in zip(args.user_id, summaries):
        logger.info(
            f"{user_id}: moved={len(summary.moved)} reinstanced={len(summary.reinstanced)} "
            f"skipped={len(summary.skipped)} failed={len(summary.failures)}"
        )
        try:
            summary.raise_for_failures()
        except PartialBatchFailure as e:
            for failure in summary.failures:
                logger.error(f"{user_id}: task {failure.task_id}: {failure.error}")
            logger.error(f"{user_id}: {e}")
            exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
