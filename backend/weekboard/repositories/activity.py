from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..models.task import TaskActivityDB


class ActivityRepository:
    """Append-only task activity log"""

    async def log(
        self,
        db: AsyncSession,
        task_id: str,
        user_id: str,
        activity_type: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TaskActivityDB:
        activity = TaskActivityDB(
            task_id=task_id,
            user_id=user_id,
            activity_type=activity_type,
            old_value=old_value,
            new_value=new_value,
            metadata_json=metadata,
        )
        db.add(activity)
        await db.commit()
        await db.refresh(activity)
        return activity

    async def list_for_task(self, db: AsyncSession, task_id: str, limit: int = 20) -> List[TaskActivityDB]:
        result = await db.execute(
            select(TaskActivityDB)
            .where(TaskActivityDB.task_id == task_id)
            .order_by(TaskActivityDB.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
