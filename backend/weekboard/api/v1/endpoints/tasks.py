"""Task API endpoints"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ....core.deps import get_current_user_id
from ....core.exceptions import ValidationError
from ....database import get_store
from ....models.records import Task, TaskUpdate
from ....repositories.ports import WeeklyTaskStore
from ....services.progress import compute_progress
from ....services.status import StatusChange, StatusDispatcher
from ....services.tasks import TaskService
from ....services.week import week_or_today

router = APIRouter()


# Request/Response models
class SubtaskCreate(BaseModel):
    title: str
    weight: Optional[int] = None


class SubtaskPatch(BaseModel):
    title: Optional[str] = None
    is_completed: Optional[bool] = None
    weight: Optional[int] = None


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    category: str = "work"
    priority: str = "medium"
    status: str = "todo"
    due_date: Optional[date] = None
    progress_current: int = 0
    progress_total: Optional[int] = None
    auto_progress: bool = False
    weighted_progress: bool = False
    recurrence_weeks: Optional[int] = None
    week_number: Optional[int] = None
    year: Optional[int] = None
    subtasks: List[SubtaskCreate] = Field(default_factory=list)


class StatusUpdate(BaseModel):
    status: str
    week_number: Optional[int] = None
    year: Optional[int] = None


class ProgressPatch(BaseModel):
    auto_progress: Optional[bool] = None
    weighted_progress: Optional[bool] = None
    progress_current: Optional[int] = None
    progress_total: Optional[int] = None


class TaskUpdateCreate(BaseModel):
    update_text: str
    progress_value: Optional[int] = None


class TaskResponse(Task):
    progress: int

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(**task.model_dump(), progress=compute_progress(task))


@router.post("", response_model=TaskResponse)
@router.post("/", response_model=TaskResponse)
async def create_task(
    task_data: TaskCreate,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    """Create a task in the given week (the current week by default)"""
    week = week_or_today(task_data.year, task_data.week_number)
    data = task_data.model_dump(exclude={"week_number", "year"})
    task = await TaskService(store).create_task(user_id, data, week)
    return TaskResponse.from_task(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    task = await TaskService(store).get_task(user_id, task_id)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/advance", response_model=StatusChange)
async def advance_status(
    task_id: str,
    week_number: Optional[int] = Query(None, description="Week the change applies to (recurring tasks)"),
    year: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    """Move the task one step along todo -> in_progress -> done -> todo"""
    week = week_or_today(year, week_number)
    return await StatusDispatcher(store).advance_status(task_id, user_id, week)


@router.put("/{task_id}/status", response_model=StatusChange)
async def set_status(
    task_id: str,
    status_data: StatusUpdate,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    week = week_or_today(status_data.year, status_data.week_number)
    return await StatusDispatcher(store).set_status(task_id, status_data.status, user_id, week)


@router.post("/{task_id}/subtasks", response_model=TaskResponse)
async def add_subtask(
    task_id: str,
    subtask_data: SubtaskCreate,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    task = await TaskService(store).add_subtask(user_id, task_id, subtask_data.title, subtask_data.weight)
    return TaskResponse.from_task(task)


@router.patch("/{task_id}/subtasks/{subtask_id}", response_model=TaskResponse)
async def update_subtask(
    task_id: str,
    subtask_id: str,
    subtask_data: SubtaskPatch,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    """Toggle or reweight a subtask; auto-progress tasks get their percentage re-derived"""
    task = await TaskService(store).update_subtask(
        user_id, task_id, subtask_id, subtask_data.model_dump(exclude_none=True)
    )
    return TaskResponse.from_task(task)


@router.patch("/{task_id}/progress", response_model=TaskResponse)
async def update_progress(
    task_id: str,
    progress_data: ProgressPatch,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    """Change auto/weighted progress settings and/or the explicit progress counters"""
    service = TaskService(store)
    settings_given = progress_data.auto_progress is not None or progress_data.weighted_progress is not None
    counters_given = progress_data.progress_current is not None or progress_data.progress_total is not None
    if not (settings_given or counters_given):
        raise ValidationError("No progress changes given")

    task = await service.get_task(user_id, task_id)
    if settings_given:
        task = await service.update_progress_settings(
            user_id, task_id, progress_data.auto_progress, progress_data.weighted_progress
        )
    if counters_given:
        current = progress_data.progress_current
        task = await service.update_progress(
            user_id, task_id, task.progress_current if current is None else current, progress_data.progress_total
        )
    return TaskResponse.from_task(task)


@router.post("/{task_id}/updates", response_model=TaskUpdate)
async def add_task_update(
    task_id: str,
    update_data: TaskUpdateCreate,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    return await TaskService(store).add_update(
        user_id, task_id, update_data.update_text, update_data.progress_value
    )
