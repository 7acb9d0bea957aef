from .schedule_resolver import ScheduleResolver, is_due
from .adherence import (
    AdherenceAggregator,
    AdherenceReport,
    DailyAdherence,
    ExerciseAdherence,
    ExerciseRecord,
    LogRecord,
    aggregate,
)

__all__ = [
    "ScheduleResolver",
    "is_due",
    "AdherenceAggregator",
    "AdherenceReport",
    "DailyAdherence",
    "ExerciseAdherence",
    "ExerciseRecord",
    "LogRecord",
    "aggregate",
]
