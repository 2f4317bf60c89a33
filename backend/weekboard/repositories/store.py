"""SQLAlchemy implementation of the WeeklyTaskStore port."""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import ConflictError, NotFoundError
from ..models.records import Subtask, Task, TaskActivity, TaskUpdate, WeeklyTaskCompletion
from ..services.week import WeekRef, recurs_in_week
from .activity import ActivityRepository
from .completion import WeeklyCompletionRepository
from .ports import WeeklyTaskStore
from .task import TaskRepository

logger = logging.getLogger(__name__)


def _plain(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members become their stored string values"""
    return {key: value.value if isinstance(value, Enum) else value for key, value in fields.items()}


class SqlWeeklyTaskStore(WeeklyTaskStore):
    """
    Opens one session per call, so rollover and migration can work on several
    tasks concurrently without sharing a session.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self.task_repo = TaskRepository()
        self.completion_repo = WeeklyCompletionRepository()
        self.activity_repo = ActivityRepository()

    async def get_task(self, task_id: str) -> Optional[Task]:
        async with self._session_maker() as db:
            task = await self.task_repo.get_by_id(db, task_id)
            return Task.model_validate(task) if task else None

    async def get_tasks_for_week(self, user_id: str, week_number: int, year: int) -> List[Task]:
        week = WeekRef(year=year, week_number=week_number)
        async with self._session_maker() as db:
            plain = await self.task_repo.get_plain_for_week(db, user_id, week_number, year)
            recurring = await self.task_repo.get_recurring_by_user_id(db, user_id)
            tasks = [Task.model_validate(t) for t in plain]
            tasks.extend(Task.model_validate(t) for t in recurring if recurs_in_week(t, week))
            return tasks

    async def create_task(self, fields: Dict[str, Any]) -> Task:
        async with self._session_maker() as db:
            try:
                task = await self.task_repo.create_task(db, _plain(fields))
            except IntegrityError as e:
                await db.rollback()
                logger.error(f"Constraint violation creating task: {e}")
                raise ConflictError(f"Cannot create task: {e.orig}")
            logger.info(f"Created task {task.id} in week {task.week_year}-W{task.week_number:02d}")
            return Task.model_validate(task)

    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        async with self._session_maker() as db:
            try:
                task = await self.task_repo.update_task(db, task_id, _plain(fields))
            except IntegrityError as e:
                await db.rollback()
                raise ConflictError(f"Cannot update task {task_id}: {e.orig}")
            if task is None:
                raise NotFoundError(f"Task {task_id} not found")
            return Task.model_validate(task)

    async def move_task(self, task_id: str, from_week: WeekRef, to_week: WeekRef) -> Optional[Task]:
        async with self._session_maker() as db:
            task = await self.task_repo.move_to_week(db, task_id, from_week, to_week)
            return Task.model_validate(task) if task else None

    async def get_weekly_completion(
        self, task_id: str, user_id: str, week_number: int
    ) -> Optional[WeeklyTaskCompletion]:
        async with self._session_maker() as db:
            row = await self.completion_repo.get_for_task_week(db, task_id, user_id, week_number)
            return WeeklyTaskCompletion.model_validate(row) if row else None

    async def get_weekly_completions(
        self, user_id: str, week_number: int, task_ids: Sequence[str]
    ) -> Dict[str, WeeklyTaskCompletion]:
        async with self._session_maker() as db:
            rows = await self.completion_repo.get_for_week(db, user_id, week_number, task_ids)
            return {row.task_id: WeeklyTaskCompletion.model_validate(row) for row in rows}

    async def upsert_weekly_completion(
        self, task_id: str, user_id: str, week_number: int, fields: Dict[str, Any]
    ) -> WeeklyTaskCompletion:
        async with self._session_maker() as db:
            try:
                row = await self.completion_repo.upsert(db, task_id, user_id, week_number, _plain(fields))
            except IntegrityError as e:
                await db.rollback()
                logger.error(f"Completion upsert conflict for task {task_id} week {week_number}: {e}")
                raise ConflictError(f"Completion upsert failed for task {task_id} week {week_number}")
            if row is None:
                raise ConflictError(f"Completion for task {task_id} week {week_number} vanished after upsert")
            return WeeklyTaskCompletion.model_validate(row)

    async def insert_weekly_completion_if_absent(
        self, task_id: str, user_id: str, week_number: int, fields: Dict[str, Any]
    ) -> Optional[WeeklyTaskCompletion]:
        async with self._session_maker() as db:
            try:
                row = await self.completion_repo.insert_if_absent(db, task_id, user_id, week_number, _plain(fields))
            except IntegrityError as e:
                await db.rollback()
                raise ConflictError(f"Completion insert failed for task {task_id} week {week_number}: {e.orig}")
            return WeeklyTaskCompletion.model_validate(row) if row else None

    async def add_subtask(self, task_id: str, title: str, weight: int = 1, position: Optional[int] = None) -> Subtask:
        async with self._session_maker() as db:
            if await self.task_repo.get_by_id(db, task_id) is None:
                raise NotFoundError(f"Task {task_id} not found")
            subtask = await self.task_repo.add_subtask(db, task_id, title, weight, position)
            return Subtask.model_validate(subtask)

    async def update_subtask(self, task_id: str, subtask_id: str, fields: Dict[str, Any]) -> Subtask:
        async with self._session_maker() as db:
            subtask = await self.task_repo.update_subtask(db, task_id, subtask_id, _plain(fields))
            if subtask is None:
                raise NotFoundError(f"Subtask {subtask_id} not found on task {task_id}")
            return Subtask.model_validate(subtask)

    async def add_task_update(self, task_id: str, text: str, progress_value: Optional[int] = None) -> TaskUpdate:
        async with self._session_maker() as db:
            if await self.task_repo.get_by_id(db, task_id) is None:
                raise NotFoundError(f"Task {task_id} not found")
            entry = await self.task_repo.add_update(db, task_id, text, progress_value)
            return TaskUpdate.model_validate(entry)

    async def log_activity(
        self,
        task_id: str,
        user_id: str,
        activity_type: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        async with self._session_maker() as db:
            await self.activity_repo.log(db, task_id, user_id, activity_type, old_value, new_value, metadata)

    async def list_activities(self, task_id: str, limit: int = 20) -> List[TaskActivity]:
        async with self._session_maker() as db:
            rows = await self.activity_repo.list_for_task(db, task_id, limit)
            return [TaskActivity.model_validate(row) for row in rows]
