import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ValidationError, field_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AppSettingsSchema(BaseModel):
    db_path: str = "pt_tracker.db"
    resend_api_key: Optional[str] = None
    email_from: str = "PT Tracker <onboarding@resend.dev>"
    youtube_api_key: Optional[str] = None
    unsplash_access_key: Optional[str] = None
    cron_secret: Optional[str] = None
    app_password: Optional[str] = None
    secure_cookies: bool = False
    media_results: int = 3


class ReminderSettingsSchema(BaseModel):
    """Fields of the reminder settings record; all optional for partial updates."""

    email: Optional[str] = None
    time: Optional[str] = None
    enabled: Optional[bool] = None
    timezone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if value and not EMAIL_PATTERN.match(value):
            raise ValueError("invalid email address")
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not TIME_PATTERN.match(value):
            raise ValueError("time must use HH:MM")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value}")
        return value


def validate_settings(data: dict) -> None:
    try:
        AppSettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def validate_reminder_settings(data: dict) -> dict:
    """Return only the provided reminder fields, validated."""
    try:
        parsed = ReminderSettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
    return parsed.model_dump(exclude_none=True)
