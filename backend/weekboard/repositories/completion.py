import logging
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import case, select

from ..core.exceptions import WeekboardError
from ..models.base import new_id, utcnow
from ..models.completion import WeeklyTaskCompletionDB
from .base import BaseRepository

logger = logging.getLogger(__name__)

CONFLICT_KEY = ["task_id", "user_id", "week_number"]


def _dialect_insert(db: AsyncSession):
    """INSERT construct supporting ON CONFLICT for the bound database"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    raise WeekboardError(f"Atomic upsert is not supported on {dialect}")


class WeeklyCompletionRepository(BaseRepository[WeeklyTaskCompletionDB]):
    """Per-week completion rows of recurring tasks"""

    def __init__(self):
        super().__init__(WeeklyTaskCompletionDB)

    async def get_for_task_week(
        self, db: AsyncSession, task_id: str, user_id: str, week_number: int
    ) -> Optional[WeeklyTaskCompletionDB]:
        result = await db.execute(
            select(WeeklyTaskCompletionDB)
            .where(
                WeeklyTaskCompletionDB.task_id == task_id,
                WeeklyTaskCompletionDB.user_id == user_id,
                WeeklyTaskCompletionDB.week_number == week_number,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_week(
        self, db: AsyncSession, user_id: str, week_number: int, task_ids: Sequence[str]
    ) -> List[WeeklyTaskCompletionDB]:
        if not task_ids:
            return []
        result = await db.execute(
            select(WeeklyTaskCompletionDB).where(
                WeeklyTaskCompletionDB.user_id == user_id,
                WeeklyTaskCompletionDB.week_number == week_number,
                WeeklyTaskCompletionDB.task_id.in_(list(task_ids)),
            )
        )
        return list(result.scalars().all())

    async def upsert(
        self, db: AsyncSession, task_id: str, user_id: str, week_number: int, fields: Dict[str, Any]
    ) -> WeeklyTaskCompletionDB:
        """Single INSERT ... ON CONFLICT DO UPDATE on the (task, user, week) key"""
        now = utcnow()
        insert = _dialect_insert(db)
        stmt = insert(WeeklyTaskCompletionDB).values(
            id=new_id(),
            task_id=task_id,
            user_id=user_id,
            week_number=week_number,
            created_at=now,
            updated_at=now,
            **fields,
        )
        set_ = {**fields, "updated_at": now}
        if "week_year" in fields and "progress_current" not in fields:
            # a row left over from the same week of an earlier year starts from zero
            set_["progress_current"] = case(
                (WeeklyTaskCompletionDB.week_year != stmt.excluded.week_year, 0),
                else_=WeeklyTaskCompletionDB.progress_current,
            )
        stmt = stmt.on_conflict_do_update(index_elements=CONFLICT_KEY, set_=set_)
        await db.execute(stmt)
        await db.commit()
        return await self.get_for_task_week(db, task_id, user_id, week_number)

    async def insert_if_absent(
        self, db: AsyncSession, task_id: str, user_id: str, week_number: int, fields: Dict[str, Any]
    ) -> Optional[WeeklyTaskCompletionDB]:
        """
        Single INSERT ... ON CONFLICT statement; None when a row for this week already existed.

        The key has no year, so a row whose week_year differs is a leftover from
        the same week number of another year and is overwritten with `fields`.
        """
        now = utcnow()
        insert = _dialect_insert(db)
        stmt = insert(WeeklyTaskCompletionDB).values(
            id=new_id(),
            task_id=task_id,
            user_id=user_id,
            week_number=week_number,
            created_at=now,
            updated_at=now,
            **fields,
        )
        if "week_year" in fields:
            stmt = stmt.on_conflict_do_update(
                index_elements=CONFLICT_KEY,
                set_={**fields, "updated_at": now},
                where=WeeklyTaskCompletionDB.week_year != stmt.excluded.week_year,
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=CONFLICT_KEY)
        result = await db.execute(stmt)
        await db.commit()
        if result.rowcount == 0:
            logger.debug(f"Completion for task {task_id} week {week_number} already exists")
            return None
        return await self.get_for_task_week(db, task_id, user_id, week_number)
