from __future__ import annotations
import html
from typing import Iterable, Optional

import requests

from algorithms import ExerciseRecord
from log_utils import get_logger

logger = get_logger(__name__)

RESEND_URL = "https://api.resend.com/emails"
REMINDER_SUBJECT = "Daily Physical Therapy Reminder"


class EmailDeliveryError(Exception):
    """Raised when a reminder email could not be handed to the provider."""


class EmailNotConfiguredError(EmailDeliveryError):
    """Raised when no provider API key is available."""


class EmailService:
    """Send reminder emails through the Resend HTTP API."""

    def __init__(
        self,
        api_key: Optional[str],
        sender: str = "PT Tracker <onboarding@resend.dev>",
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    @staticmethod
    def reminder_text(exercises: Iterable[ExerciseRecord]) -> str:
        lines = "\n".join(f"- {e.name}: {e.sets} sets x {e.reps} reps" for e in exercises)
        return (
            "Hi! Don't forget to complete your physical therapy exercises today:\n\n"
            f"{lines}\n\nStay consistent for the best results!"
        )

    @staticmethod
    def reminder_html(exercises: Iterable[ExerciseRecord]) -> str:
        items = "".join(
            f"<li><strong>{html.escape(e.name)}</strong>: {e.sets} sets x {e.reps} reps</li>"
            for e in exercises
        )
        return (
            '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #2563eb;">Daily PT Reminder</h2>'
            "<p>Hi! Don't forget to complete your physical therapy exercises today:</p>"
            f'<ul style="line-height: 1.8;">{items}</ul>'
            '<p style="margin-top: 20px;">Stay consistent for the best results!</p>'
            '<hr style="margin-top: 30px; border: none; border-top: 1px solid #e5e7eb;" />'
            '<p style="font-size: 12px; color: #6b7280;">Sent from PT Tracker</p>'
            "</div>"
        )

    def send_reminder(self, to: str, exercises: list[ExerciseRecord]) -> str:
        """Send the daily reminder and return the provider's message id."""
        if not self.api_key:
            raise EmailNotConfiguredError("Resend API key not configured")
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": REMINDER_SUBJECT,
            "text": self.reminder_text(exercises),
            "html": self.reminder_html(exercises),
        }
        try:
            resp = requests.post(
                RESEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("Email send error: %s", e)
            raise EmailDeliveryError(str(e)) from e
        try:
            message_id = resp.json().get("id", "")
        except (ValueError, AttributeError):
            logger.warning("Unreadable reply from email provider for %s", to)
            message_id = ""
        logger.info("Reminder sent to %s (%s)", to, message_id)
        return message_id
