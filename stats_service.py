from __future__ import annotations
import datetime

from algorithms import AdherenceAggregator, AdherenceReport, ScheduleResolver
from db import ExerciseRepository, DailyLogRepository


class StatisticsService:
    """Compute adherence statistics for the exercise log."""

    def __init__(
        self,
        exercise_repo: ExerciseRepository,
        log_repo: DailyLogRepository,
    ) -> None:
        self.exercises = exercise_repo
        self.logs = log_repo

    def adherence(self, days: int = 30, today: str | None = None) -> AdherenceReport:
        """Return the report for the ``days`` before ``today`` through ``today``.

        ``today`` is the caller's local date. Without it the server's date is
        used, which can be off by one for callers in other timezones.
        """
        if days < 1:
            raise ValueError("days must be at least 1")
        if today:
            end = datetime.date.fromisoformat(today)
        else:
            end = datetime.date.today()
        start = end - datetime.timedelta(days=days)
        return AdherenceAggregator.aggregate(
            self.exercises.fetch_records(),
            self.logs.fetch_range(start.isoformat(), end.isoformat()),
            start,
            end,
            end,
        )

    def checklist(self, date: str) -> list[dict]:
        """Return the exercises due on ``date`` joined with their logs."""
        due = ScheduleResolver.due_exercises(self.exercises.fetch_records(), date)
        logged = self.logs.fetch_for_date(date)
        result = []
        for exercise in due:
            sets_completed, completed = logged.get(exercise.id, (0, False))
            result.append(
                {
                    "exerciseId": exercise.id,
                    "name": exercise.name,
                    "sets": exercise.sets,
                    "reps": exercise.reps,
                    "setsCompleted": sets_completed,
                    "completed": completed,
                }
            )
        return result
