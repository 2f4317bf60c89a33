"""Week board and week-boundary endpoints"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ....core.deps import get_current_user_id
from ....database import get_store
from ....repositories.ports import WeeklyTaskStore
from ....services.batch import MigrationSummary, RolloverSummary
from ....services.migration import MigrationEngine
from ....services.rollover import RolloverEngine
from ....services.tasks import BoardEntry, TaskService
from ....services.week import WeekRef, today_week, week_or_today, week_range

router = APIRouter()


class WeekResponse(BaseModel):
    year: int
    week_number: int
    label: str
    start_date: date
    end_date: date

    @classmethod
    def from_week(cls, week: WeekRef) -> "WeekResponse":
        start, end = week_range(week)
        return cls(
            year=week.year,
            week_number=week.week_number,
            label=str(week),
            start_date=start,
            end_date=end,
        )


class RolloverRequest(BaseModel):
    from_year: int
    from_week: int
    to_year: Optional[int] = None
    to_week: Optional[int] = None


class MigrateRequest(BaseModel):
    from_year: int
    from_week: int


@router.get("/current", response_model=WeekResponse)
async def get_current_week():
    """ISO week of today in the configured timezone"""
    return WeekResponse.from_week(today_week())


@router.get("/{year}/{week_number}/tasks", response_model=List[BoardEntry])
async def get_week_tasks(
    year: int,
    week_number: int,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    """Tasks visible in a week, with each recurring task's status for that week"""
    week = week_or_today(year, week_number)
    return await TaskService(store).week_board(user_id, week)


@router.post("/rollover", response_model=RolloverSummary)
async def rollover_week(
    request: RolloverRequest,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    """Carry unfinished work into the next week (or the given target week)"""
    from_week = WeekRef(year=request.from_year, week_number=request.from_week)
    if request.to_year is None and request.to_week is None:
        to_week = from_week.next()
    else:
        to_week = week_or_today(request.to_year, request.to_week)
    return await RolloverEngine(store).rollover_week(user_id, from_week, to_week)


@router.post("/migrate", response_model=MigrationSummary)
async def migrate_week(
    request: MigrateRequest,
    user_id: str = Depends(get_current_user_id),
    store: WeeklyTaskStore = Depends(get_store),
):
    """Pull unfinished work from an older week into the current week"""
    from_week = WeekRef(year=request.from_year, week_number=request.from_week)
    return await MigrationEngine(store).migrate_week(user_id, from_week, today_week())
