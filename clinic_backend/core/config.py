import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int, minimum: int = 0) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    if parsed < minimum:
        return default
    return parsed


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

CRON_SECRET = os.getenv("CRON_SECRET", "").strip()

DEFAULT_BUFFER_MINUTES = 10
DEFAULT_CLINIC_TIME_ZONE = "America/Bogota"


@dataclass(frozen=True)
class SchedulingSettings:
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES
    time_zone: str = DEFAULT_CLINIC_TIME_ZONE
    default_slot_duration_minutes: int = 30
    patient_change_notice_hours: int = 24
    reschedule_suggestion_limit: int = 5
    reschedule_suggestion_days: int = 7
    availability_range_max_days: int = 60


def get_scheduling_settings() -> SchedulingSettings:
    """Read the clinic scheduling configuration.

    Called once per request so that a changed environment is picked up
    without restarting the process.
    """
    return SchedulingSettings(
        buffer_minutes=_get_int(os.getenv("APPOINTMENT_BUFFER_MINUTES"), DEFAULT_BUFFER_MINUTES),
        time_zone=os.getenv("CLINIC_TIME_ZONE", "").strip() or DEFAULT_CLINIC_TIME_ZONE,
        default_slot_duration_minutes=_get_int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES"), 30, minimum=1),
        patient_change_notice_hours=_get_int(os.getenv("PATIENT_CHANGE_NOTICE_HOURS"), 24),
        reschedule_suggestion_limit=_get_int(os.getenv("RESCHEDULE_SUGGESTION_LIMIT"), 5),
        reschedule_suggestion_days=_get_int(os.getenv("RESCHEDULE_SUGGESTION_DAYS"), 7, minimum=1),
        availability_range_max_days=_get_int(os.getenv("AVAILABILITY_RANGE_MAX_DAYS"), 60, minimum=1),
    )


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
