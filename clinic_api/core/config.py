"""
Application configuration.
Values are read from environment variables / .env file. Scheduling policy and
billing defaults live here so they are chosen once, at the boundary.
"""
import logging
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

_DEV_JWT_SECRET = "dev-only-change-me"


class Settings(BaseSettings):
    APP_ENV: str = "development"
    DATABASE_URL: str = "sqlite+aiosqlite:///./clinicdesk.db"
    JWT_SECRET_KEY: str = _DEV_JWT_SECRET

    # Appointment time validation
    SCHEDULING_POLICY: str = "strict"  # strict | relaxed
    STRICT_MAX_APPOINTMENT_HOURS: int = 4
    RELAXED_MAX_APPOINTMENT_HOURS: int = 8
    BUSINESS_HOURS_START: str = "08:00"
    BUSINESS_HOURS_END: str = "18:00"

    # Slot generation fallbacks when the clinic has no working hours configured
    DEFAULT_WORKING_HOURS_START: str = "09:00"
    DEFAULT_WORKING_HOURS_END: str = "17:00"
    DEFAULT_SLOT_MINUTES: int = 30

    # Billing
    DEFAULT_CURRENCY: str = "INR"

    # SendGrid Email
    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = "noreply@clinicdesk.app"
    SENDGRID_FROM_NAME: str = "ClinicDesk"

    # Twilio SMS
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""

    class Config:
        env_file = ".env"


settings = Settings()

# Validate critical security settings
if settings.APP_ENV == "production" and settings.JWT_SECRET_KEY in ("", _DEV_JWT_SECRET):
    raise ValueError(
        "JWT_SECRET_KEY is not set. It must be provided as an environment variable in production. "
        "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )

if settings.SCHEDULING_POLICY not in ("strict", "relaxed"):
    logger.warning(
        "Unknown SCHEDULING_POLICY '%s'; falling back to strict", settings.SCHEDULING_POLICY
    )
    settings.SCHEDULING_POLICY = "strict"
