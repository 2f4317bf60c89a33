"""Task CRUD on top of the store: creation defaults, week boards, subtasks and progress log"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..core.exceptions import NotFoundError, ValidationError
from ..models.records import (
    Task, TaskCategory, TaskPriority, TaskStatus, TaskUpdate, WeeklyTaskCompletion,
)
from ..repositories.ports import WeeklyTaskStore
from .activity import record_activity
from .progress import compute_progress
from .status import completion_for_week
from .week import WeekRef

logger = logging.getLogger(__name__)

MIN_WEIGHT = 1
MAX_WEIGHT = 10
MAX_RECURRENCE_WEEKS = 15


class BoardEntry(BaseModel):
    """A task as it appears on one week's board"""
    task: Task
    effective_status: TaskStatus
    progress: int
    completion: Optional[WeeklyTaskCompletion] = None


def validate_weight(weight) -> int:
    if weight is None:
        return MIN_WEIGHT
    if isinstance(weight, bool) or not isinstance(weight, int) or not MIN_WEIGHT <= weight <= MAX_WEIGHT:
        raise ValidationError(f"Subtask weight must be an integer between {MIN_WEIGHT} and {MAX_WEIGHT}")
    return weight


def new_task_fields(user_id: str, data: Dict[str, Any], week: WeekRef) -> Dict[str, Any]:
    """Apply creation defaults; weekly_recurring and is_recurring always agree"""
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Task title is required")

    try:
        category = TaskCategory(data.get("category") or TaskCategory.WORK)
        status = TaskStatus(data.get("status") or TaskStatus.TODO)
        priority = TaskPriority(data.get("priority") or TaskPriority.MEDIUM)
    except ValueError as e:
        raise ValidationError(str(e))

    progress_current = data.get("progress_current") or 0
    progress_total = data.get("progress_total")
    if progress_current < 0 or (progress_total is not None and progress_total < 0):
        raise ValidationError("Progress values cannot be negative")

    fields = {
        "user_id": user_id,
        "title": title,
        "description": data.get("description"),
        "category": category,
        "status": status,
        "priority": priority,
        "due_date": data.get("due_date"),
        "progress_current": progress_current,
        "progress_total": progress_total,
        "auto_progress": bool(data.get("auto_progress", False)),
        "weighted_progress": bool(data.get("weighted_progress", False)),
        "is_recurring": category == TaskCategory.WEEKLY_RECURRING,
        "week_number": week.week_number,
        "week_year": week.year,
    }

    if fields["is_recurring"]:
        recurrence_weeks = data.get("recurrence_weeks")
        if recurrence_weeks is not None and not 1 <= recurrence_weeks <= MAX_RECURRENCE_WEEKS:
            raise ValidationError(f"recurrence_weeks must be between 1 and {MAX_RECURRENCE_WEEKS}")
        fields["original_week_number"] = data.get("original_week_number") or week.week_number
        fields["recurrence_weeks"] = recurrence_weeks

    subtasks = []
    for position, subtask in enumerate(data.get("subtasks") or []):
        subtask_title = (subtask.get("title") or "").strip()
        if not subtask_title:
            raise ValidationError("Subtask title is required")
        subtasks.append({
            "title": subtask_title,
            "weight": validate_weight(subtask.get("weight")),
            "position": position,
            "is_completed": bool(subtask.get("is_completed", False)),
        })
    if subtasks:
        fields["subtasks"] = subtasks

    return fields


class TaskService:
    def __init__(self, store: WeeklyTaskStore):
        self.store = store

    async def create_task(self, user_id: str, data: Dict[str, Any], week: WeekRef) -> Task:
        task = await self.store.create_task(new_task_fields(user_id, data, week))
        await record_activity(self.store, task.id, user_id, "created", None, task.title)
        if task.auto_progress and task.subtasks:
            task = await self.refresh_auto_progress(task, user_id)
        return task

    async def get_task(self, user_id: str, task_id: str) -> Task:
        task = await self.store.get_task(task_id)
        if task is None or task.user_id != user_id:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    async def week_board(self, user_id: str, week: WeekRef) -> List[BoardEntry]:
        """Tasks visible in `week`, recurring ones overlaid with that week's completion"""
        tasks = await self.store.get_tasks_for_week(user_id, week.week_number, week.year)
        recurring_ids = [t.id for t in tasks if t.is_recurring]
        completions = (
            await self.store.get_weekly_completions(user_id, week.week_number, recurring_ids)
            if recurring_ids else {}
        )

        board = []
        for task in tasks:
            if not task.is_recurring:
                board.append(BoardEntry(task=task, effective_status=task.status, progress=compute_progress(task)))
                continue
            completion = completion_for_week(completions.get(task.id), week)
            status = completion.status if completion else TaskStatus.TODO
            view = task.model_copy(update={
                "status": status,
                "progress_current": completion.progress_current if completion else 0,
            })
            board.append(BoardEntry(
                task=task, effective_status=status, progress=compute_progress(view), completion=completion,
            ))
        return board

    async def refresh_auto_progress(self, task: Task, user_id: str) -> Task:
        """Persist the subtask-derived percentage as progress_current out of 100"""
        if not (task.auto_progress and task.subtasks):
            return task
        percent = compute_progress(task)
        if task.progress_current == percent and task.progress_total == 100:
            return task
        updated = await self.store.update_task(task.id, {"progress_current": percent, "progress_total": 100})
        await record_activity(
            self.store, task.id, user_id, "progress_updated", str(task.progress_current), str(percent),
        )
        return updated

    async def add_subtask(self, user_id: str, task_id: str, title: str, weight: Optional[int] = None) -> Task:
        task = await self.get_task(user_id, task_id)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Subtask title is required")
        await self.store.add_subtask(task.id, title, validate_weight(weight))
        return await self.refresh_auto_progress(await self.get_task(user_id, task_id), user_id)

    async def update_subtask(self, user_id: str, task_id: str, subtask_id: str, fields: Dict[str, Any]) -> Task:
        """Toggle, rename or reweight a subtask, then re-derive auto progress"""
        await self.get_task(user_id, task_id)
        changes = {}
        if fields.get("title") is not None:
            changes["title"] = fields["title"].strip()
            if not changes["title"]:
                raise ValidationError("Subtask title is required")
        if fields.get("is_completed") is not None:
            changes["is_completed"] = bool(fields["is_completed"])
        if fields.get("weight") is not None:
            changes["weight"] = validate_weight(fields["weight"])
        if not changes:
            raise ValidationError("No subtask changes given")

        await self.store.update_subtask(task_id, subtask_id, changes)
        return await self.refresh_auto_progress(await self.get_task(user_id, task_id), user_id)

    async def add_update(
        self, user_id: str, task_id: str, text: str, progress_value: Optional[int] = None
    ) -> TaskUpdate:
        """Append to the progress log; a progress_value also becomes the task's progress_current"""
        task = await self.get_task(user_id, task_id)
        text = (text or "").strip()
        if not text:
            raise ValidationError("Update text is required")
        if progress_value is not None and progress_value < 0:
            raise ValidationError("Progress value cannot be negative")
        entry = await self.store.add_task_update(task_id, text, progress_value)
        logger.info(f"Logged update on task {task_id}")
        if progress_value is not None:
            await self._set_progress_current(task, user_id, progress_value)
        return entry

    async def update_progress(
        self, user_id: str, task_id: str, current: int, total: Optional[int] = None
    ) -> Task:
        """Set the explicit progress counters"""
        task = await self.get_task(user_id, task_id)
        if current is None or current < 0 or (total is not None and total < 0):
            raise ValidationError("Progress values cannot be negative")
        if total is not None and total != task.progress_total:
            task = await self.store.update_task(task_id, {"progress_total": total})
        return await self._set_progress_current(task, user_id, current)

    async def update_progress_settings(
        self,
        user_id: str,
        task_id: str,
        auto_progress: Optional[bool] = None,
        weighted_progress: Optional[bool] = None,
    ) -> Task:
        """Switch auto and weighted progress, then re-derive the percentage from subtasks"""
        await self.get_task(user_id, task_id)
        changes = {}
        if auto_progress is not None:
            changes["auto_progress"] = bool(auto_progress)
        if weighted_progress is not None:
            changes["weighted_progress"] = bool(weighted_progress)
        if not changes:
            raise ValidationError("No progress settings given")

        task = await self.store.update_task(task_id, changes)
        await record_activity(
            self.store, task_id, user_id, "progress_settings_changed", None, None, changes,
        )
        return await self.refresh_auto_progress(task, user_id)

    async def _set_progress_current(self, task: Task, user_id: str, value: int) -> Task:
        if value == task.progress_current:
            return task
        updated = await self.store.update_task(task.id, {"progress_current": value})
        await record_activity(
            self.store, task.id, user_id, "progress_updated", str(task.progress_current), str(value),
        )
        return updated
