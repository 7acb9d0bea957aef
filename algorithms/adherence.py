from __future__ import annotations
import math
import datetime
from dataclasses import dataclass, field
from typing import Iterable, List

from .schedule_resolver import ScheduleResolver


@dataclass(frozen=True)
class ExerciseRecord:
    """Catalog entry as seen by the scheduling and statistics code."""

    id: int
    name: str
    sets: int
    reps: int
    frequency_per_week: int


@dataclass(frozen=True)
class LogRecord:
    """One persisted (date, exercise) log."""

    date: str
    exercise_id: int
    sets_completed: int
    completed: bool


@dataclass
class DailyAdherence:
    date: str
    completion_rate: int
    completed: int
    expected: int

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "completionRate": self.completion_rate,
            "completed": self.completed,
            "expected": self.expected,
        }


@dataclass
class ExerciseAdherence:
    id: int
    name: str
    completed: int
    expected: int
    rate: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "completed": self.completed,
            "expected": self.expected,
            "rate": self.rate,
        }


@dataclass
class AdherenceReport:
    daily_series: List[DailyAdherence] = field(default_factory=list)
    current_streak: int = 0
    overall_rate: int = 0
    total_completed: int = 0
    total_expected: int = 0
    per_exercise: List[ExerciseAdherence] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "dailySeries": [d.to_dict() for d in self.daily_series],
            "currentStreak": self.current_streak,
            "overallRate": self.overall_rate,
            "totalCompleted": self.total_completed,
            "totalExpected": self.total_expected,
            "perExercise": [e.to_dict() for e in self.per_exercise],
        }


class AdherenceAggregator:
    """Compute completion statistics from exercise logs.

    All inputs are explicit, including ``today``; nothing here reads the
    clock or the database, so the same inputs always give the same report.
    """

    @staticmethod
    def percentage(part: int, whole: int) -> int:
        """Return ``part / whole`` as a whole percentage, rounding halves up."""
        if whole <= 0:
            return 0
        return math.floor(100 * part / whole + 0.5)

    @staticmethod
    def _as_date(value: datetime.date | str) -> datetime.date:
        if value is None:
            raise ValueError("date is required")
        if isinstance(value, datetime.date):
            return value
        return datetime.date.fromisoformat(value)

    @classmethod
    def daily_series(
        cls,
        exercises: List[ExerciseRecord],
        logs: Iterable[LogRecord],
        start: datetime.date,
        end: datetime.date,
    ) -> List[DailyAdherence]:
        completed_by_day: dict[str, int] = {}
        for log in logs:
            if log.completed:
                completed_by_day[log.date] = completed_by_day.get(log.date, 0) + 1

        series: List[DailyAdherence] = []
        day = start
        while day <= end:
            date_str = day.isoformat()
            expected = len(ScheduleResolver.due_exercises(exercises, day))
            completed = completed_by_day.get(date_str, 0)
            series.append(
                DailyAdherence(
                    date=date_str,
                    completion_rate=cls.percentage(completed, expected),
                    completed=completed,
                    expected=expected,
                )
            )
            day += datetime.timedelta(days=1)
        return series

    @staticmethod
    def current_streak(series: List[DailyAdherence], today: str) -> int:
        """Count fully completed days walking back from ``today``.

        Future days are ignored and ``today`` never ends the streak while it is
        unfinished. Any earlier day that is not fully completed, including a
        day with nothing due, ends it.
        """
        streak = 0
        for day in reversed(series):
            if day.date > today:
                continue
            if day.expected > 0 and day.completed == day.expected:
                streak += 1
            elif day.date < today:
                break
        return streak

    @classmethod
    def per_exercise(
        cls,
        exercises: List[ExerciseRecord],
        logs: List[LogRecord],
        days_in_range: int,
    ) -> List[ExerciseAdherence]:
        result: List[ExerciseAdherence] = []
        for exercise in exercises:
            completed = sum(
                1 for log in logs if log.exercise_id == exercise.id and log.completed
            )
            expected = math.ceil(days_in_range * exercise.frequency_per_week / 7)
            result.append(
                ExerciseAdherence(
                    id=exercise.id,
                    name=exercise.name,
                    completed=completed,
                    expected=expected,
                    rate=cls.percentage(completed, expected),
                )
            )
        return result

    @classmethod
    def aggregate(
        cls,
        exercises: Iterable[ExerciseRecord],
        logs: Iterable[LogRecord],
        start_date: datetime.date | str,
        end_date: datetime.date | str,
        today: datetime.date | str,
    ) -> AdherenceReport:
        """Build the adherence report for the inclusive range ``start_date``..``end_date``."""
        start = cls._as_date(start_date)
        end = cls._as_date(end_date)
        today_str = cls._as_date(today).isoformat()
        if start > end:
            raise ValueError("start_date must not be after end_date")

        catalog = list(exercises)
        in_range = [
            log
            for log in logs
            if start.isoformat() <= log.date <= end.isoformat()
        ]
        in_range.sort(key=lambda log: (log.date, log.exercise_id))

        series = cls.daily_series(catalog, in_range, start, end)
        total_completed = sum(1 for log in in_range if log.completed)
        total_expected = sum(day.expected for day in series)
        return AdherenceReport(
            daily_series=series,
            current_streak=cls.current_streak(series, today_str),
            overall_rate=cls.percentage(total_completed, total_expected),
            total_completed=total_completed,
            total_expected=total_expected,
            per_exercise=cls.per_exercise(catalog, in_range, (end - start).days),
        )


def aggregate(
    exercises: Iterable[ExerciseRecord],
    logs: Iterable[LogRecord],
    start_date: datetime.date | str,
    end_date: datetime.date | str,
    today: datetime.date | str,
) -> AdherenceReport:
    return AdherenceAggregator.aggregate(exercises, logs, start_date, end_date, today)
