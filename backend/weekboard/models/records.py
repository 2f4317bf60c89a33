"""Plain records handed between the repositories and the engine."""
from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


class TaskCategory(str, Enum):
    LIFE_ADMIN = "life_admin"
    WORK = "work"
    WEEKLY_RECURRING = "weekly_recurring"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Subtask(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    task_id: str
    title: str
    is_completed: bool = False
    weight: Optional[int] = 1
    position: int = 0


class Task(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    category: TaskCategory
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    is_recurring: bool = False
    original_week_number: Optional[int] = None
    recurrence_weeks: Optional[int] = None
    progress_current: int = 0
    progress_total: Optional[int] = None
    auto_progress: bool = False
    weighted_progress: bool = False
    week_number: int
    week_year: int
    subtasks: List[Subtask] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_weekly_recurring(self) -> bool:
        return self.category == TaskCategory.WEEKLY_RECURRING


class WeeklyTaskCompletion(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    task_id: str
    user_id: str
    week_number: int
    week_year: Optional[int] = None
    status: TaskStatus = TaskStatus.TODO
    progress_current: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TaskUpdate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    task_id: str
    update_text: str
    progress_value: Optional[int] = None
    created_at: Optional[datetime] = None


class TaskActivity(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    task_id: str
    user_id: str
    activity_type: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="metadata_json")
    created_at: Optional[datetime] = None


class TaskRef(BaseModel):
    """Lightweight pointer to a task reported by batch operations."""
    task_id: str
    title: str
    week_number: int
    week_year: int

    @classmethod
    def for_task(cls, task: Task, week_number: Optional[int] = None, week_year: Optional[int] = None) -> "TaskRef":
        return cls(
            task_id=task.id,
            title=task.title,
            week_number=task.week_number if week_number is None else week_number,
            week_year=task.week_year if week_year is None else week_year,
        )
