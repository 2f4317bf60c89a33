"""
Best-effort batch execution for week-level operations.

Each task is processed independently under a bounded worker pool; a failure is
recorded against its task id and never stops sibling tasks.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field, computed_field

from ..core.exceptions import PartialBatchFailure
from ..models.records import TaskRef

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchFailure(BaseModel):
    task_id: str
    error: str


class BatchSkip(BaseModel):
    task_id: str
    reason: str


class BatchSummary(BaseModel):
    operation: str
    from_week: str
    to_week: str
    skipped: List[BatchSkip] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)

    def add_failure(self, task_id: str, error: BaseException) -> None:
        self.failures.append(BatchFailure(task_id=task_id, error=f"{type(error).__name__}: {error}"))

    def add_skip(self, task_id: str, reason: str) -> None:
        self.skipped.append(BatchSkip(task_id=task_id, reason=reason))

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise PartialBatchFailure(self)


class RolloverSummary(BatchSummary):
    operation: str = "rollover"
    moved: List[TaskRef] = Field(default_factory=list)
    reinstanced: List[TaskRef] = Field(default_factory=list)


class MigrationSummary(BatchSummary):
    operation: str = "migration"
    moved: List[TaskRef] = Field(default_factory=list)
    copied: List[TaskRef] = Field(default_factory=list)

    @computed_field
    @property
    def counts(self) -> Dict[str, int]:
        return {
            "moved": len(self.moved),
            "copied": len(self.copied),
            "failed": len(self.failures),
        }


@dataclass
class ItemOutcome(Generic[T]):
    item: T
    result: Any = None
    error: Optional[BaseException] = None


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[Any]],
    concurrency: int,
    describe: Callable[[T], str] = str,
) -> List[ItemOutcome[T]]:
    """
    Run `worker` over `items` with at most `concurrency` in flight.

    Outcomes come back in input order so summaries stay deterministic.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run(item: T) -> ItemOutcome[T]:
        async with semaphore:
            try:
                return ItemOutcome(item=item, result=await worker(item))
            except Exception as e:
                logger.error(f"Batch item {describe(item)} failed: {e}", exc_info=True)
                return ItemOutcome(item=item, error=e)

    return list(await asyncio.gather(*(_run(item) for item in items)))
