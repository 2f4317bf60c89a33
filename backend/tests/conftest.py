"""Shared fixtures: an in-memory store for engine tests and a SQLite-backed store"""
import asyncio
import uuid
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pytest
import pytest_asyncio

from weekboard.core.exceptions import NotFoundError
from weekboard.models.base import utcnow
from weekboard.models.records import Subtask, Task, TaskActivity, TaskUpdate, WeeklyTaskCompletion
from weekboard.repositories.ports import WeeklyTaskStore
from weekboard.services.week import WeekRef, recurs_in_week

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"


class InMemoryStore(WeeklyTaskStore):
    """Dict-backed store; writes for ids in `fail_task_ids` raise to simulate storage errors"""

    def __init__(self):
        self.tasks: Dict[str, Task] = {}
        self.completions: Dict[Tuple[str, str, int], WeeklyTaskCompletion] = {}
        self.updates: List[TaskUpdate] = []
        self.activities: List[TaskActivity] = []
        self.fail_task_ids: Set[str] = set()
        self.fail_create = False
        self.fail_activity_log = False
        self.in_flight = 0
        self.max_in_flight = 0

    def seed(self, **fields) -> Task:
        subtasks = fields.pop("subtasks", [])
        task_id = fields.pop("id", None) or str(uuid.uuid4())
        data = {
            "user_id": USER_ID,
            "category": "work",
            "title": "Task",
            "week_number": 10,
            "week_year": 2024,
        }
        data.update(fields)
        if data["category"] == "weekly_recurring":
            data.setdefault("is_recurring", True)
        task = Task(
            id=task_id,
            subtasks=[
                Subtask(id=str(uuid.uuid4()), task_id=task_id, **{"position": i, **st})
                for i, st in enumerate(subtasks)
            ],
            created_at=utcnow(),
            updated_at=utcnow(),
            **data,
        )
        self.tasks[task.id] = task
        return task

    async def _write(self, task_id: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        if task_id in self.fail_task_ids:
            raise RuntimeError("storage unavailable")

    async def get_task(self, task_id: str) -> Optional[Task]:
        task = self.tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def get_tasks_for_week(self, user_id: str, week_number: int, year: int) -> List[Task]:
        week = WeekRef(year=year, week_number=week_number)
        result = []
        for task in self.tasks.values():
            if task.user_id != user_id:
                continue
            if task.is_recurring:
                if recurs_in_week(task, week):
                    result.append(task.model_copy(deep=True))
            elif (task.week_number, task.week_year) == (week_number, year):
                result.append(task.model_copy(deep=True))
        return result

    async def create_task(self, fields: Dict[str, Any]) -> Task:
        if self.fail_create:
            raise RuntimeError("storage unavailable")
        task = self.seed(**fields)
        await self._write(task.id)
        return task.model_copy(deep=True)

    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        await self._write(task_id)
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        updated = Task.model_validate({**task.model_dump(), **fields, "updated_at": utcnow()})
        self.tasks[task_id] = updated
        return updated.model_copy(deep=True)

    async def move_task(self, task_id: str, from_week: WeekRef, to_week: WeekRef) -> Optional[Task]:
        await self._write(task_id)
        task = self.tasks.get(task_id)
        if task is None or task.is_recurring or (task.week_year, task.week_number) != (from_week.year, from_week.week_number):
            return None
        moved = task.model_copy(update={"week_number": to_week.week_number, "week_year": to_week.year})
        self.tasks[task_id] = moved
        return moved.model_copy(deep=True)

    async def get_weekly_completion(self, task_id, user_id, week_number) -> Optional[WeeklyTaskCompletion]:
        return self.completions.get((task_id, user_id, week_number))

    async def get_weekly_completions(
        self, user_id: str, week_number: int, task_ids: Sequence[str]
    ) -> Dict[str, WeeklyTaskCompletion]:
        return {
            task_id: self.completions[(task_id, user_id, week_number)]
            for task_id in task_ids
            if (task_id, user_id, week_number) in self.completions
        }

    async def upsert_weekly_completion(self, task_id, user_id, week_number, fields) -> WeeklyTaskCompletion:
        await self._write(task_id)
        key = (task_id, user_id, week_number)
        existing = self.completions.get(key)
        if existing is None:
            row = WeeklyTaskCompletion(
                id=str(uuid.uuid4()), task_id=task_id, user_id=user_id, week_number=week_number, **fields
            )
        else:
            data = {**existing.model_dump(), **fields}
            if "progress_current" not in fields and existing.week_year != fields.get("week_year", existing.week_year):
                data["progress_current"] = 0
            row = WeeklyTaskCompletion.model_validate(data)
        self.completions[key] = row
        return row

    async def insert_weekly_completion_if_absent(self, task_id, user_id, week_number, fields):
        await self._write(task_id)
        key = (task_id, user_id, week_number)
        existing = self.completions.get(key)
        if existing is not None and existing.week_year == fields.get("week_year", existing.week_year):
            return None
        row = WeeklyTaskCompletion(
            id=existing.id if existing else str(uuid.uuid4()), task_id=task_id, user_id=user_id, week_number=week_number, **fields
        )
        self.completions[key] = row
        return row

    async def add_subtask(self, task_id, title, weight=1, position=None) -> Subtask:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        subtask = Subtask(
            id=str(uuid.uuid4()),
            task_id=task_id,
            title=title,
            weight=weight,
            position=len(task.subtasks) if position is None else position,
        )
        task.subtasks.append(subtask)
        return subtask

    async def update_subtask(self, task_id, subtask_id, fields) -> Subtask:
        task = self.tasks.get(task_id)
        for index, subtask in enumerate(task.subtasks if task else []):
            if subtask.id == subtask_id:
                task.subtasks[index] = subtask.model_copy(update=fields)
                return task.subtasks[index]
        raise NotFoundError(f"Subtask {subtask_id} not found on task {task_id}")

    async def add_task_update(self, task_id, text, progress_value=None) -> TaskUpdate:
        if task_id not in self.tasks:
            raise NotFoundError(f"Task {task_id} not found")
        entry = TaskUpdate(
            id=str(uuid.uuid4()), task_id=task_id, update_text=text,
            progress_value=progress_value, created_at=utcnow(),
        )
        self.updates.append(entry)
        return entry

    async def log_activity(self, task_id, user_id, activity_type, old_value=None, new_value=None, metadata=None):
        if self.fail_activity_log:
            raise RuntimeError("activity log unavailable")
        self.activities.append(TaskActivity(
            id=str(uuid.uuid4()), task_id=task_id, user_id=user_id, activity_type=activity_type,
            old_value=old_value, new_value=new_value, metadata=metadata, created_at=utcnow(),
        ))

    async def list_activities(self, task_id, limit=20) -> List[TaskActivity]:
        return [a for a in reversed(self.activities) if a.task_id == task_id][:limit]

    def activity_types(self, task_id: str) -> List[str]:
        return [a.activity_type for a in self.activities if a.task_id == task_id]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def week10():
    return WeekRef(year=2024, week_number=10)


@pytest.fixture
def week10_board(store):
    """Week 10 of 2024: A todo, B in progress, C done (all plain) and D recurring"""
    return {
        "A": store.seed(title="A", status="todo"),
        "B": store.seed(
            title="B", status="in_progress", priority="high", progress_current=3, progress_total=5,
            subtasks=[{"title": "draft", "is_completed": True, "weight": 2}, {"title": "review"}],
        ),
        "C": store.seed(title="C", status="done"),
        "D": store.seed(title="D", category="weekly_recurring", original_week_number=10),
    }


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    """SqlWeeklyTaskStore over a throwaway SQLite file"""
    from weekboard.database import build_engine, create_tables
    from weekboard.repositories.store import SqlWeeklyTaskStore
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'weekboard-test.db'}")
    await create_tables(engine)
    yield SqlWeeklyTaskStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    await engine.dispose()
