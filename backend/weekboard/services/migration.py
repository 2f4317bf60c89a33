"""
Manual migration of unfinished work from an older week into the current one.

Tasks still `todo` are moved (same id). Tasks `in_progress` keep their history
in the old week and get a fresh `todo` copy in the destination week. Recurring
tasks are never migrated.
"""
import logging
from typing import Any, Dict, Optional

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..models.records import Task, TaskCategory, TaskRef, TaskStatus
from ..repositories.ports import WeeklyTaskStore
from .activity import record_activity
from .batch import MigrationSummary, run_bounded
from .week import WeekRef

logger = logging.getLogger(__name__)

MIGRATABLE_STATUSES = (TaskStatus.TODO, TaskStatus.IN_PROGRESS)
COPY_HISTORY_LIMIT = 200


def is_migration_candidate(task: Task) -> bool:
    return (
        task.category != TaskCategory.WEEKLY_RECURRING
        and not task.is_recurring
        and task.status in MIGRATABLE_STATUSES
    )


def copy_fields(task: Task, to_week: WeekRef) -> Dict[str, Any]:
    """Fields of the fresh copy created for an in-progress task"""
    return {
        "user_id": task.user_id,
        "category": task.category,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "due_date": task.due_date,
        "status": TaskStatus.TODO,
        "progress_current": 0,
        "progress_total": task.progress_total,
        "auto_progress": task.auto_progress,
        "weighted_progress": task.weighted_progress,
        "is_recurring": False,
        "week_number": to_week.week_number,
        "week_year": to_week.year,
        "subtasks": [
            {
                "title": subtask.title,
                "weight": subtask.weight or 1,
                "position": subtask.position,
                "is_completed": False,
            }
            for subtask in task.subtasks
        ],
    }


class MigrationEngine:
    def __init__(self, store: WeeklyTaskStore, concurrency: Optional[int] = None):
        self.store = store
        self.concurrency = concurrency or settings.BATCH_CONCURRENCY

    async def migrate_week(self, user_id: str, from_week: WeekRef, to_week: WeekRef) -> MigrationSummary:
        if not from_week < to_week:
            raise ValidationError(f"Can only migrate from an older week: {from_week} is not before {to_week}")

        summary = MigrationSummary(from_week=str(from_week), to_week=str(to_week))
        tasks = await self.store.get_tasks_for_week(user_id, from_week.week_number, from_week.year)
        candidates = [t for t in tasks if is_migration_candidate(t)]
        logger.info(f"Migrating {len(candidates)} of {len(tasks)} tasks from {from_week} to {to_week} for user {user_id}")

        async def migrate(task: Task):
            if task.status == TaskStatus.TODO:
                moved = await self.store.move_task(task.id, from_week, to_week)
                if moved is not None:
                    await record_activity(
                        self.store, task.id, user_id, "moved_week", str(from_week), str(to_week),
                        {"migration": True},
                    )
                return "moved", moved

            if await self.already_copied(task.id, to_week):
                return "already_copied", None

            copy = await self.store.create_task(copy_fields(task, to_week))
            await record_activity(
                self.store, copy.id, user_id, "created", None, copy.title,
                {"migration": True, "original_task_id": task.id, "from_week": str(from_week)},
            )
            await record_activity(
                self.store, task.id, user_id, "copied_to", str(from_week), str(to_week),
                {"migration": True, "copy_task_id": copy.id},
            )
            return "copied", copy

        for outcome in await run_bounded(candidates, migrate, self.concurrency, lambda t: t.id):
            if outcome.error is not None:
                summary.add_failure(outcome.item.id, outcome.error)
                continue
            kind, record = outcome.result
            if kind == "already_copied":
                summary.add_skip(outcome.item.id, f"already copied to {to_week}")
            elif record is None:
                summary.add_skip(outcome.item.id, f"no longer in {from_week}")
            elif kind == "moved":
                summary.moved.append(TaskRef.for_task(record))
            else:
                summary.copied.append(TaskRef.for_task(record))

        logger.info(f"Migration {from_week} -> {to_week} for user {user_id}: {summary.counts}")
        return summary

    async def already_copied(self, task_id: str, to_week: WeekRef) -> bool:
        """True if an earlier migration already copied this in-progress task into `to_week`"""
        activities = await self.store.list_activities(task_id, limit=COPY_HISTORY_LIMIT)
        return any(
            a.activity_type == "copied_to" and a.new_value == str(to_week)
            for a in activities
        )
