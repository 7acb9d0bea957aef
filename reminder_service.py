from __future__ import annotations
import datetime
from zoneinfo import ZoneInfo

from algorithms import ExerciseRecord, ScheduleResolver
from db import ExerciseRepository, ReminderSettingsRepository, EmailLogRepository
from email_service import EmailService, EmailDeliveryError, REMINDER_SUBJECT
from log_utils import get_logger

logger = get_logger(__name__)


class ReminderService:
    """Decide when a reminder is due and send it."""

    SEND_WINDOW_MINUTES = 5
    MINUTES_PER_DAY = 24 * 60

    def __init__(
        self,
        exercise_repo: ExerciseRepository,
        settings_repo: ReminderSettingsRepository,
        email: EmailService,
        email_logs: EmailLogRepository | None = None,
    ) -> None:
        self.exercises = exercise_repo
        self.settings = settings_repo
        self.email = email
        self.email_logs = email_logs

    def scheduled_for(self, day: datetime.date | str) -> list[ExerciseRecord]:
        return ScheduleResolver.due_exercises(self.exercises.fetch_records(), day)

    def local_now(self, now: datetime.datetime | None = None) -> datetime.datetime:
        """Return ``now`` (aware, default current time) in the reminder timezone."""
        tz = ZoneInfo(self.settings.fetch()["timezone"])
        if now is None:
            return datetime.datetime.now(tz)
        if now.tzinfo is None:
            now = now.replace(tzinfo=datetime.timezone.utc)
        return now.astimezone(tz)

    @classmethod
    def within_window(cls, configured: str, local_time: datetime.time) -> bool:
        hour, minute = (int(part) for part in configured.split(":"))
        diff = abs((local_time.hour * 60 + local_time.minute) - (hour * 60 + minute))
        diff = min(diff, cls.MINUTES_PER_DAY - diff)
        return diff <= cls.SEND_WINDOW_MINUTES

    def send_reminder(self, today: datetime.date | str) -> dict:
        """Send today's reminder if reminders are configured and work is due."""
        settings = self.settings.fetch()
        if not settings["enabled"] or not settings["email"]:
            return {"success": True, "skipped": "not_configured"}
        due = self.scheduled_for(today)
        if not due:
            return {"success": True, "skipped": "no_exercises"}
        summary = ", ".join(e.name for e in due)
        try:
            self.email.send_reminder(settings["email"], due)
        except EmailDeliveryError:
            if self.email_logs is not None:
                self.email_logs.add(settings["email"], REMINDER_SUBJECT, summary, False)
            raise
        if self.email_logs is not None:
            self.email_logs.add(settings["email"], REMINDER_SUBJECT, summary, True)
        return {"success": True, "sent": True, "exercises": len(due)}

    def run_cron(self, now: datetime.datetime | None = None) -> dict:
        """Send the reminder when ``now`` falls in the configured send window."""
        settings = self.settings.fetch()
        if not settings["enabled"] or not settings["email"]:
            return {"success": True, "skipped": "not_configured"}
        local = self.local_now(now)
        if not self.within_window(settings["time"], local.time()):
            return {"success": True, "skipped": "not_time"}
        logger.info("Reminder window open at %s", local.isoformat())
        return self.send_reminder(local.date())
