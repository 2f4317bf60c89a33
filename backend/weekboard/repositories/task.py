from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.orm import selectinload

from ..models.base import utcnow
from ..models.task import TaskDB, SubtaskDB, TaskUpdateDB
from ..services.week import WeekRef
from .base import BaseRepository


class TaskRepository(BaseRepository[TaskDB]):
    """Repository for tasks and their subtasks / progress updates"""

    def __init__(self):
        super().__init__(TaskDB)

    async def get_by_id(self, db: AsyncSession, id: str) -> Optional[TaskDB]:
        """Get a task with its subtasks loaded"""
        result = await db.execute(
            select(TaskDB)
            .options(selectinload(TaskDB.subtasks))
            .where(TaskDB.id == id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_plain_for_week(self, db: AsyncSession, user_id: str, week_number: int, year: int) -> List[TaskDB]:
        """Non-recurring tasks scheduled in a week"""
        result = await db.execute(
            select(TaskDB)
            .options(selectinload(TaskDB.subtasks))
            .where(
                TaskDB.user_id == user_id,
                TaskDB.is_recurring == False,
                TaskDB.week_number == week_number,
                TaskDB.week_year == year,
            )
            .order_by(TaskDB.category, TaskDB.created_at)
        )
        return list(result.scalars().all())

    async def get_recurring_by_user_id(self, db: AsyncSession, user_id: str) -> List[TaskDB]:
        """All recurring templates of a user; the caller filters by active week span"""
        result = await db.execute(
            select(TaskDB)
            .options(selectinload(TaskDB.subtasks))
            .where(TaskDB.user_id == user_id, TaskDB.is_recurring == True)
            .order_by(TaskDB.created_at)
        )
        return list(result.scalars().all())

    async def create_task(self, db: AsyncSession, fields: Dict[str, Any]) -> TaskDB:
        """Create a task, and any subtasks given under the 'subtasks' key"""
        fields = dict(fields)
        subtasks = fields.pop("subtasks", None) or []

        task = TaskDB(**fields)
        for index, subtask in enumerate(subtasks):
            task.subtasks.append(
                SubtaskDB(
                    title=subtask["title"],
                    is_completed=subtask.get("is_completed", False),
                    weight=subtask.get("weight") or 1,
                    position=subtask.get("position", index),
                )
            )
        db.add(task)
        await db.commit()
        return await self.get_by_id(db, task.id)

    async def update_task(self, db: AsyncSession, task_id: str, fields: Dict[str, Any]) -> Optional[TaskDB]:
        """Update task columns; returns None when the task does not exist"""
        fields = {k: v for k, v in fields.items() if k != "subtasks"}
        return await self.update(db, task_id, **fields)

    async def move_to_week(self, db: AsyncSession, task_id: str, from_week: WeekRef, to_week: WeekRef) -> Optional[TaskDB]:
        """Move a plain task only if it is still in from_week"""
        result = await db.execute(
            update(TaskDB)
            .where(
                TaskDB.id == task_id,
                TaskDB.is_recurring == False,
                TaskDB.week_number == from_week.week_number,
                TaskDB.week_year == from_week.year,
            )
            .values(week_number=to_week.week_number, week_year=to_week.year, updated_at=utcnow())
        )
        await db.commit()
        if result.rowcount == 0:
            return None
        return await self.get_by_id(db, task_id)

    async def get_next_subtask_position(self, db: AsyncSession, task_id: str) -> int:
        result = await db.execute(
            select(func.max(SubtaskDB.position)).where(SubtaskDB.task_id == task_id)
        )
        max_position = result.scalar()
        return 0 if max_position is None else max_position + 1

    async def add_subtask(
        self, db: AsyncSession, task_id: str, title: str, weight: int = 1, position: Optional[int] = None
    ) -> SubtaskDB:
        if position is None:
            position = await self.get_next_subtask_position(db, task_id)
        subtask = SubtaskDB(task_id=task_id, title=title, weight=weight, position=position)
        db.add(subtask)
        await db.commit()
        await db.refresh(subtask)
        return subtask

    async def update_subtask(
        self, db: AsyncSession, task_id: str, subtask_id: str, fields: Dict[str, Any]
    ) -> Optional[SubtaskDB]:
        result = await db.execute(
            update(SubtaskDB)
            .where(SubtaskDB.id == subtask_id, SubtaskDB.task_id == task_id)
            .values(**fields, updated_at=utcnow())
        )
        await db.commit()
        if result.rowcount == 0:
            return None
        result = await db.execute(
            select(SubtaskDB).where(SubtaskDB.id == subtask_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_update(
        self, db: AsyncSession, task_id: str, text: str, progress_value: Optional[int] = None
    ) -> TaskUpdateDB:
        """Append a progress log entry"""
        entry = TaskUpdateDB(task_id=task_id, update_text=text, progress_value=progress_value)
        db.add(entry)
        await db.commit()
        await db.refresh(entry)
        return entry
