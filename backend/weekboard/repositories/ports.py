from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from weekboard.models.records import Subtask, Task, TaskActivity, TaskUpdate, WeeklyTaskCompletion
from weekboard.services.week import WeekRef


class WeeklyTaskStore(ABC):
    """Storage the lifecycle engine reads and writes through."""

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Task]: ...

    @abstractmethod
    async def get_tasks_for_week(self, user_id: str, week_number: int, year: int) -> List[Task]:
        """Plain tasks scheduled in the week plus recurring tasks active in it."""

    @abstractmethod
    async def create_task(self, fields: Dict[str, Any]) -> Task: ...

    @abstractmethod
    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        """Raises NotFoundError when the id does not resolve."""

    @abstractmethod
    async def move_task(self, task_id: str, from_week: WeekRef, to_week: WeekRef) -> Optional[Task]:
        """Conditional move; returns None when the task is no longer in from_week."""

    @abstractmethod
    async def get_weekly_completion(
        self, task_id: str, user_id: str, week_number: int
    ) -> Optional[WeeklyTaskCompletion]: ...

    @abstractmethod
    async def get_weekly_completions(
        self, user_id: str, week_number: int, task_ids: Sequence[str]
    ) -> Dict[str, WeeklyTaskCompletion]: ...

    @abstractmethod
    async def upsert_weekly_completion(
        self, task_id: str, user_id: str, week_number: int, fields: Dict[str, Any]
    ) -> WeeklyTaskCompletion:
        """
        Atomic insert-or-update keyed on (task_id, user_id, week_number).

        `fields` carries week_year; a row left from another year gets progress_current reset.
        """

    @abstractmethod
    async def insert_weekly_completion_if_absent(
        self, task_id: str, user_id: str, week_number: int, fields: Dict[str, Any]
    ) -> Optional[WeeklyTaskCompletion]:
        """
        Atomic insert that leaves a row for the same week_year alone and returns None.

        A row with a different week_year is a leftover from another year and is overwritten.
        """

    @abstractmethod
    async def add_subtask(self, task_id: str, title: str, weight: int = 1, position: Optional[int] = None) -> Subtask: ...

    @abstractmethod
    async def update_subtask(self, task_id: str, subtask_id: str, fields: Dict[str, Any]) -> Subtask: ...

    @abstractmethod
    async def add_task_update(self, task_id: str, text: str, progress_value: Optional[int] = None) -> TaskUpdate: ...

    @abstractmethod
    async def log_activity(
        self,
        task_id: str,
        user_id: str,
        activity_type: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None: ...

    @abstractmethod
    async def list_activities(self, task_id: str, limit: int = 20) -> List[TaskActivity]: ...
