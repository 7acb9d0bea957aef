import math
import datetime
from functools import lru_cache
from typing import Iterable, List, TypeVar


T = TypeVar("T")


class ScheduleResolver:
    """Spread weekly exercise sessions across the days of a week."""

    DAYS_PER_WEEK: int = 7

    @staticmethod
    def day_of_week(day: datetime.date | str) -> int:
        """Return the day of week for ``day`` with 0 = Sunday ... 6 = Saturday."""
        if isinstance(day, str):
            day = datetime.date.fromisoformat(day)
        return (day.weekday() + 1) % 7

    @staticmethod
    @lru_cache(maxsize=None)
    def scheduled_days(frequency_per_week: int) -> tuple[int, ...]:
        """Return the sorted days of week on which an exercise is due."""
        if frequency_per_week <= 0:
            raise ValueError("frequency_per_week must be positive")
        if frequency_per_week >= ScheduleResolver.DAYS_PER_WEEK:
            return tuple(range(ScheduleResolver.DAYS_PER_WEEK))
        interval = ScheduleResolver.DAYS_PER_WEEK / frequency_per_week
        days = {
            math.floor(i * interval) % ScheduleResolver.DAYS_PER_WEEK
            for i in range(frequency_per_week)
        }
        return tuple(sorted(days))

    @classmethod
    def is_due(cls, frequency_per_week: int, day_of_week: int) -> bool:
        """Return ``True`` if an exercise done ``frequency_per_week`` times is due."""
        if not 0 <= day_of_week < cls.DAYS_PER_WEEK:
            raise ValueError("day_of_week must be between 0 and 6")
        return day_of_week in cls.scheduled_days(frequency_per_week)

    @classmethod
    def due_exercises(
        cls, exercises: Iterable[T], day: datetime.date | str
    ) -> List[T]:
        """Filter ``exercises`` down to the ones due on ``day``.

        Items only need a ``frequency_per_week`` attribute.
        """
        dow = cls.day_of_week(day)
        return [e for e in exercises if cls.is_due(e.frequency_per_week, dow)]


def is_due(frequency_per_week: int, day_of_week: int) -> bool:
    return ScheduleResolver.is_due(frequency_per_week, day_of_week)
