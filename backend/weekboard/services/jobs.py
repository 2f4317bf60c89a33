"""Entry points for an external scheduler (cron) to run week-boundary rollover."""
import logging
from datetime import date
from typing import Iterable, List, Optional

from ..repositories.ports import WeeklyTaskStore
from .batch import RolloverSummary
from .rollover import RolloverEngine
from .week import WeekRef, current_week

logger = logging.getLogger(__name__)


async def run_rollover_for_user(
    store: WeeklyTaskStore,
    user_id: str,
    today: date,
    concurrency: Optional[int] = None,
) -> RolloverSummary:
    """Carry the previous week's work into the week containing `today`"""
    to_week = current_week(today)
    from_week = to_week.previous()
    logger.info(f"Scheduled rollover {from_week} -> {to_week} for user {user_id}")
    return await RolloverEngine(store, concurrency).rollover_week(user_id, from_week, to_week)


async def run_rollover(
    store: WeeklyTaskStore,
    user_ids: Iterable[str],
    from_week: WeekRef,
    to_week: WeekRef,
    concurrency: Optional[int] = None,
) -> List[RolloverSummary]:
    """Roll over several users one after another; each summary is independent"""
    engine = RolloverEngine(store, concurrency)
    summaries = []
    for user_id in user_ids:
        summary = await engine.rollover_week(user_id, from_week, to_week)
        if not summary.ok:
            logger.warning(f"Rollover for user {user_id} finished with {len(summary.failures)} failure(s)")
        summaries.append(summary)
    return summaries
