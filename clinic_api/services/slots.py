"""Open slot calculation for a practitioner's day."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, NamedTuple, Optional
from uuid import UUID
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.config import settings
from clinic_api.core.dependencies import ActingUser
from clinic_api.core.errors import NotFound, ValidationError
from clinic_api.models.appointment import Appointment
from clinic_api.models.clinic import Clinic
from clinic_api.models.user import User, UserRole
from clinic_api.services.conflicts import INACTIVE_STATUSES, intervals_overlap
from clinic_api.services.time_slots import parse_hhmm

logger = logging.getLogger(__name__)

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class Slot(NamedTuple):
    start: datetime
    end: datetime


class WorkingHours(NamedTuple):
    start: str  # "09:00"
    end: str  # "17:00"
    slot_minutes: int


def generate_slots(
    day: date,
    working_start: time,
    working_end: time,
    slot_minutes: int,
    booked: Iterable[tuple[datetime, datetime]] = (),
    break_start: Optional[time] = None,
    break_end: Optional[time] = None,
) -> list[Slot]:
    """Step through the working day in ``slot_minutes`` increments, keeping free slots.

    A slot never runs past ``working_end``. Slots overlapping the break or any
    booked interval are dropped.
    """
    if slot_minutes <= 0:
        raise ValidationError("Slot duration must be positive")

    step = timedelta(minutes=slot_minutes)
    day_end = datetime.combine(day, working_end)
    busy = list(booked)
    if break_start and break_end:
        busy.append((datetime.combine(day, break_start), datetime.combine(day, break_end)))

    slots = []
    cursor = datetime.combine(day, working_start)
    while cursor + step <= day_end:
        slot_end = cursor + step
        if not any(intervals_overlap(cursor, slot_end, b_start, b_end) for b_start, b_end in busy):
            slots.append(Slot(cursor, slot_end))
        cursor = slot_end

    return slots


def clinic_working_hours(clinic: Optional[Clinic]) -> WorkingHours:
    """Working hours configured on the clinic, else the application defaults."""
    return WorkingHours(
        start=(clinic and clinic.working_hours_start) or settings.DEFAULT_WORKING_HOURS_START,
        end=(clinic and clinic.working_hours_end) or settings.DEFAULT_WORKING_HOURS_END,
        slot_minutes=(clinic and clinic.appointment_duration_minutes) or settings.DEFAULT_SLOT_MINUTES,
    )


async def list_available_slots(
    db: AsyncSession,
    acting_user: ActingUser,
    doctor_id: UUID,
    day: date,
    working_hours: Optional[WorkingHours] = None,
) -> list[Slot]:
    """Free slots for a doctor of the caller's clinic on ``day``."""
    result = await db.execute(
        select(User).where(
            and_(
                User.id == doctor_id,
                User.clinic_id == acting_user.clinic_id,
                User.role == UserRole.DOCTOR.value,
            )
        )
    )
    if result.scalar_one_or_none() is None:
        raise NotFound("Doctor not found in this clinic")

    clinic = await db.get(Clinic, acting_user.clinic_id)

    if clinic and clinic.working_days and WEEKDAYS[day.weekday()] not in clinic.working_days:
        return []  # Not a working day

    hours = working_hours or clinic_working_hours(clinic)
    try:
        opens, closes = parse_hhmm(hours.start), parse_hhmm(hours.end)
    except ValueError:
        raise ValidationError(f"Invalid working hours {hours.start}-{hours.end}")

    window_start = datetime.combine(day, opens)
    window_end = datetime.combine(day, closes)

    result = await db.execute(
        select(Appointment.start_time, Appointment.end_time).where(
            and_(
                Appointment.clinic_id == acting_user.clinic_id,
                Appointment.doctor_id == doctor_id,
                Appointment.status.not_in(INACTIVE_STATUSES),
                Appointment.start_time < window_end,
                Appointment.end_time > window_start,
            )
        )
    )
    booked = [(row.start_time, row.end_time) for row in result.all()]

    break_start = break_end = None
    if clinic and clinic.break_start and clinic.break_end:
        break_start, break_end = parse_hhmm(clinic.break_start), parse_hhmm(clinic.break_end)

    slots = generate_slots(day, opens, closes, hours.slot_minutes, booked, break_start, break_end)
    logger.debug("Doctor %s has %d open slots on %s", doctor_id, len(slots), day)
    return slots
