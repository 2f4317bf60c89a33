"""
Week-boundary rollover.

Unfinished plain tasks move to the next week in place; recurring tasks get a
fresh `todo` completion row for the next week. Safe to run more than once for
the same pair of weeks.
"""
import logging
from typing import Optional

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..models.records import Task, TaskRef, TaskStatus
from ..repositories.ports import WeeklyTaskStore
from .activity import record_activity
from .batch import RolloverSummary, run_bounded
from .week import WeekRef, recurs_in_week

logger = logging.getLogger(__name__)


class RolloverEngine:
    def __init__(self, store: WeeklyTaskStore, concurrency: Optional[int] = None):
        self.store = store
        self.concurrency = concurrency or settings.BATCH_CONCURRENCY

    async def rollover_week(self, user_id: str, from_week: WeekRef, to_week: WeekRef) -> RolloverSummary:
        if to_week <= from_week:
            raise ValidationError(f"Rollover target {to_week} must come after {from_week}")

        summary = RolloverSummary(from_week=str(from_week), to_week=str(to_week))
        tasks = await self.store.get_tasks_for_week(user_id, from_week.week_number, from_week.year)

        plain = [t for t in tasks if not t.is_recurring]
        recurring = [t for t in tasks if t.is_recurring]

        to_move = []
        for task in plain:
            if task.status == TaskStatus.DONE:
                summary.add_skip(task.id, f"done, stays in {from_week}")
            else:
                to_move.append(task)

        to_reinstance = []
        for task in recurring:
            if recurs_in_week(task, to_week):
                to_reinstance.append(task)
            else:
                summary.add_skip(task.id, f"recurrence ends before {to_week}")

        async def move(task: Task) -> Optional[Task]:
            moved = await self.store.move_task(task.id, from_week, to_week)
            if moved is not None:
                await record_activity(
                    self.store, task.id, user_id, "rolled_over", str(from_week), str(to_week)
                )
            return moved

        async def reinstance(task: Task):
            created = await self.store.insert_weekly_completion_if_absent(
                task.id, user_id, to_week.week_number,
                {"status": TaskStatus.TODO, "progress_current": 0, "week_year": to_week.year},
            )
            if created is not None:
                await record_activity(
                    self.store, task.id, user_id, "reinstanced", None, TaskStatus.TODO.value,
                    {"week_number": to_week.week_number, "week_year": to_week.year},
                )
            return created

        describe = lambda t: t.id

        for outcome in await run_bounded(to_move, move, self.concurrency, describe):
            if outcome.error is not None:
                summary.add_failure(outcome.item.id, outcome.error)
            elif outcome.result is None:
                summary.add_skip(outcome.item.id, f"no longer in {from_week}")
            else:
                summary.moved.append(TaskRef.for_task(outcome.result))

        for outcome in await run_bounded(to_reinstance, reinstance, self.concurrency, describe):
            if outcome.error is not None:
                summary.add_failure(outcome.item.id, outcome.error)
            elif outcome.result is None:
                summary.add_skip(outcome.item.id, f"already instanced for {to_week}")
            else:
                summary.reinstanced.append(
                    TaskRef.for_task(outcome.item, to_week.week_number, to_week.year)
                )

        logger.info(
            f"Rollover {from_week} -> {to_week} for user {user_id}: "
            f"moved={len(summary.moved)} reinstanced={len(summary.reinstanced)} "
            f"skipped={len(summary.skipped)} failed={len(summary.failures)}"
        )
        return summary

    async def rollover_to_next(self, user_id: str, from_week: WeekRef) -> RolloverSummary:
        return await self.rollover_week(user_id, from_week, from_week.next())
