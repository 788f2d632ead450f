"""Appointment time validation.

One validator, two policies:

* ``strict``  - 4 hour cap, no past start times, business hours enforced.
* ``relaxed`` - 8 hour cap; past start times and out-of-hours intervals are
  logged as warnings but accepted.

The policy comes from ``settings.SCHEDULING_POLICY`` unless a caller passes one.
"""

import enum
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional, Union

from clinic_api.core.config import settings
from clinic_api.core.errors import ValidationError

logger = logging.getLogger(__name__)

TimeInput = Union[datetime, str]


class SchedulingPolicy(str, enum.Enum):
    STRICT = "strict"
    RELAXED = "relaxed"


def parse_hhmm(value: str) -> time:
    """Parse an "HH:MM" string into a ``time``."""
    h, m = map(int, value.split(":"))
    return time(hour=h, minute=m)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_time_value(value: TimeInput, label: str) -> datetime:
    """Coerce a datetime or ISO-8601 string to a naive UTC datetime."""
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, str):
        try:
            # fromisoformat only learned the "Z" suffix in 3.11
            return _to_naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            pass
    raise ValidationError(f"Invalid {label} time format", code="InvalidTimeFormat")


def max_duration(policy: SchedulingPolicy) -> timedelta:
    if policy == SchedulingPolicy.STRICT:
        return timedelta(hours=settings.STRICT_MAX_APPOINTMENT_HOURS)
    return timedelta(hours=settings.RELAXED_MAX_APPOINTMENT_HOURS)


def current_policy() -> SchedulingPolicy:
    return SchedulingPolicy(settings.SCHEDULING_POLICY)


def validate_time_slot(
    start_time: TimeInput,
    end_time: TimeInput,
    policy: Optional[SchedulingPolicy] = None,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Validate a candidate appointment interval and return it parsed.

    Raises ValidationError with one of the codes InvalidTimeFormat,
    EndBeforeStart, DurationExceeded, PastSchedulingNotAllowed or
    OutsideBusinessHours.
    """
    policy = policy or current_policy()
    now = _to_naive_utc(now) if now else datetime.utcnow()

    start = parse_time_value(start_time, "start")
    end = parse_time_value(end_time, "end")

    if end <= start:
        raise ValidationError("End time must be after start time", code="EndBeforeStart")

    limit = max_duration(policy)
    if end - start > limit:
        hours = int(limit.total_seconds() // 3600)
        raise ValidationError(
            f"Appointment duration cannot exceed {hours} hours", code="DurationExceeded"
        )

    if start < now:
        if policy == SchedulingPolicy.STRICT:
            raise ValidationError(
                "Appointments cannot be scheduled in the past", code="PastSchedulingNotAllowed"
            )
        logger.warning("Appointment starts in the past (%s); accepted under relaxed policy", start)

    opens = parse_hhmm(settings.BUSINESS_HOURS_START)
    closes = parse_hhmm(settings.BUSINESS_HOURS_END)
    outside = (
        start.time() < opens
        or end.time() > closes
        or end.date() != start.date()
    )
    if outside:
        window = f"{settings.BUSINESS_HOURS_START}-{settings.BUSINESS_HOURS_END}"
        if policy == SchedulingPolicy.STRICT:
            raise ValidationError(
                f"Appointment must fall within business hours ({window})",
                code="OutsideBusinessHours",
            )
        logger.warning("Appointment %s-%s is outside business hours (%s)", start, end, window)

    return start, end
