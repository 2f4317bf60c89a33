"""Task completion percentage, derived from subtasks, explicit counters or status."""
from typing import Iterable

from weekboard.models.records import Task, Subtask, TaskStatus

STATUS_PROGRESS = {
    TaskStatus.TODO: 0,
    TaskStatus.IN_PROGRESS: 50,
    TaskStatus.BLOCKED: 25,
    TaskStatus.DONE: 100,
}


def _percent(numerator: int, denominator: int) -> int:
    """round(100 * numerator / denominator), halves rounded up, clamped to 0..100."""
    if denominator <= 0:
        return 0
    value = (200 * numerator + denominator) // (2 * denominator)
    return max(0, min(100, value))


def _effective_weight(subtask: Subtask) -> int:
    return subtask.weight or 1


def weighted_percent(subtasks: Iterable[Subtask]) -> int:
    subtasks = list(subtasks)
    total = sum(_effective_weight(st) for st in subtasks)
    done = sum(_effective_weight(st) for st in subtasks if st.is_completed)
    return _percent(done, total)


def count_percent(subtasks: Iterable[Subtask]) -> int:
    subtasks = list(subtasks)
    done = sum(1 for st in subtasks if st.is_completed)
    return _percent(done, len(subtasks))


def compute_progress(task: Task) -> int:
    """
    Completion percentage for a task, in priority order:

    1. auto progress over subtasks (weighted or by count),
    2. explicit progress_current / progress_total,
    3. a fixed value per status.
    """
    if task.subtasks and task.auto_progress:
        if task.weighted_progress:
            return weighted_percent(task.subtasks)
        return count_percent(task.subtasks)

    if task.progress_total is not None:
        return _percent(task.progress_current or 0, task.progress_total)

    return STATUS_PROGRESS.get(TaskStatus(task.status), 0)
