"""
ISO week helpers.

Every lifecycle operation is keyed on a WeekRef (ISO year + ISO week number).
The "current week" is always passed in explicitly; only `today_week` looks at
the wall clock.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo

from weekboard.core.exceptions import InvalidDateError

DateInput = Union[date, datetime, str]


def weeks_in_year(year: int) -> int:
    """52 or 53; December 28th always falls in the last ISO week."""
    return date(year, 12, 28).isocalendar()[1]


@dataclass(frozen=True, order=True)
class WeekRef:
    # Field order gives chronological ordering: year first, then week
    year: int
    week_number: int

    def __post_init__(self):
        if not isinstance(self.year, int) or not isinstance(self.week_number, int):
            raise InvalidDateError(f"Week must be integers, got {self.year!r}/{self.week_number!r}")
        if self.year < 1 or self.year > 9999:
            raise InvalidDateError(f"Year {self.year} is out of range")
        if not 1 <= self.week_number <= weeks_in_year(self.year):
            raise InvalidDateError(f"{self.year} has no ISO week {self.week_number}")

    @classmethod
    def from_date(cls, value: date) -> "WeekRef":
        iso_year, iso_week, _ = value.isocalendar()
        return cls(year=iso_year, week_number=iso_week)

    def monday(self) -> date:
        return date.fromisocalendar(self.year, self.week_number, 1)

    def sunday(self) -> date:
        return date.fromisocalendar(self.year, self.week_number, 7)

    def shift(self, weeks: int) -> "WeekRef":
        return WeekRef.from_date(self.monday() + timedelta(weeks=weeks))

    def next(self) -> "WeekRef":
        return self.shift(1)

    def previous(self) -> "WeekRef":
        return self.shift(-1)

    def weeks_until(self, other: "WeekRef") -> int:
        return (other.monday() - self.monday()).days // 7

    def __str__(self) -> str:
        return f"{self.year}-W{self.week_number:02d}"


def _parse(value: DateInput) -> date:
    # bool is an int subclass and would otherwise slip through later checks
    if isinstance(value, bool) or value is None:
        raise InvalidDateError(f"Not a date: {value!r}")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise InvalidDateError(f"Unparseable date: {value!r}")
    raise InvalidDateError(f"Not a date: {value!r}")


def current_week(value: DateInput) -> WeekRef:
    """Map a calendar date to its ISO week (Monday start, week 1 holds the first Thursday)."""
    return WeekRef.from_date(_parse(value))


def today_week(tz_name: Optional[str] = None) -> WeekRef:
    """ISO week of today in the given timezone (settings.TIMEZONE by default)."""
    from weekboard.core.config import settings

    tz = ZoneInfo(tz_name or settings.TIMEZONE)
    return WeekRef.from_date(datetime.now(tz).date())


def week_range(week: WeekRef) -> Tuple[date, date]:
    return week.monday(), week.sunday()


def recurrence_start(task) -> WeekRef:
    """First week a recurring task shows up in (its creation week unless overridden)."""
    return WeekRef(year=task.week_year, week_number=task.original_week_number or task.week_number)


def recurs_in_week(task, week: WeekRef) -> bool:
    """True if a recurring task spans `week`; recurrence_weeks=None means open-ended."""
    start = recurrence_start(task)
    if week < start:
        return False
    if task.recurrence_weeks is None:
        return True
    return start.weeks_until(week) < task.recurrence_weeks


def week_or_today(year: Optional[int] = None, week_number: Optional[int] = None) -> WeekRef:
    """An explicit week when both parts are given, else the current week."""
    if year is None and week_number is None:
        return today_week()
    if year is None or week_number is None:
        raise InvalidDateError("year and week_number must be given together")
    return WeekRef(year=year, week_number=week_number)
