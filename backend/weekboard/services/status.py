"""
Status dispatch for tasks.

Plain tasks keep their status on the task row. Weekly recurring tasks are
templates: their status for a given week lives in a WeeklyTaskCompletion row,
so the template's own status is never touched.
"""
import logging
from dataclasses import dataclass
from typing import Literal, Optional, Union

from pydantic import BaseModel

from ..core.exceptions import NotFoundError, ValidationError
from ..models.records import Task, TaskStatus, WeeklyTaskCompletion
from ..repositories.ports import WeeklyTaskStore
from .activity import record_activity
from .week import WeekRef

logger = logging.getLogger(__name__)

# blocked is only reachable by explicit assignment
STATUS_CYCLE = {
    TaskStatus.TODO: TaskStatus.IN_PROGRESS,
    TaskStatus.IN_PROGRESS: TaskStatus.DONE,
    TaskStatus.DONE: TaskStatus.TODO,
    TaskStatus.BLOCKED: TaskStatus.TODO,
}


@dataclass(frozen=True)
class TaskTarget:
    task_id: str


@dataclass(frozen=True)
class CompletionTarget:
    task_id: str
    user_id: str
    week_number: int


StatusTarget = Union[TaskTarget, CompletionTarget]


class StatusChange(BaseModel):
    kind: Literal["task", "completion"]
    previous_status: TaskStatus
    record: Union[WeeklyTaskCompletion, Task]


def parse_status(value) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value!r}")


def next_status(status) -> TaskStatus:
    return STATUS_CYCLE[parse_status(status)]


def completion_for_week(
    completion: Optional[WeeklyTaskCompletion], week: WeekRef
) -> Optional[WeeklyTaskCompletion]:
    """The completion if it belongs to `week`; rows keep the week number but not always the year"""
    if completion is None or completion.week_year not in (None, week.year):
        return None
    return completion


def resolve_status_target(task: Task, user_id: str, week: WeekRef) -> StatusTarget:
    if task.is_weekly_recurring:
        return CompletionTarget(task_id=task.id, user_id=user_id, week_number=week.week_number)
    return TaskTarget(task_id=task.id)


class StatusDispatcher:
    def __init__(self, store: WeeklyTaskStore):
        self.store = store

    async def load_task(self, task: Union[Task, str], user_id: str) -> Task:
        """Re-read the task so decisions are made on stored state"""
        task_id = task if isinstance(task, str) else task.id
        stored = await self.store.get_task(task_id)
        if stored is None or stored.user_id != user_id:
            raise NotFoundError(f"Task {task_id} not found")
        return stored

    async def effective_status(self, task: Task, user_id: str, week: WeekRef) -> TaskStatus:
        target = resolve_status_target(task, user_id, week)
        if isinstance(target, CompletionTarget):
            completion = completion_for_week(
                await self.store.get_weekly_completion(target.task_id, target.user_id, target.week_number), week
            )
            return completion.status if completion else TaskStatus.TODO
        return task.status

    async def advance_status(self, task: Union[Task, str], user_id: str, week: WeekRef) -> StatusChange:
        stored = await self.load_task(task, user_id)
        current = await self.effective_status(stored, user_id, week)
        return await self._dispatch(stored, current, STATUS_CYCLE[current], user_id, week)

    async def set_status(self, task: Union[Task, str], status, user_id: str, week: WeekRef) -> StatusChange:
        new_status = parse_status(status)
        stored = await self.load_task(task, user_id)
        current = await self.effective_status(stored, user_id, week)
        return await self._dispatch(stored, current, new_status, user_id, week)

    async def _dispatch(
        self, task: Task, previous: TaskStatus, new_status: TaskStatus, user_id: str, week: WeekRef
    ) -> StatusChange:
        target = resolve_status_target(task, user_id, week)

        if isinstance(target, CompletionTarget):
            record = await self.store.upsert_weekly_completion(
                target.task_id, target.user_id, target.week_number,
                {"status": new_status, "week_year": week.year},
            )
            change = StatusChange(kind="completion", previous_status=previous, record=record)
            metadata = {"week_number": week.week_number, "week_year": week.year}
        else:
            record = await self.store.update_task(target.task_id, {"status": new_status})
            change = StatusChange(kind="task", previous_status=previous, record=record)
            metadata = None

        logger.info(f"Task {task.id} status {previous.value} -> {new_status.value} ({change.kind})")
        await record_activity(
            self.store, task.id, user_id, "status_changed", previous.value, new_status.value, metadata
        )
        return change
