"""Double-booking detection for practitioners."""

from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.models.appointment import Appointment, AppointmentStatus

# Appointments in these states no longer hold their time slot
INACTIVE_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: [a_start, a_end) intersects [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


async def find_conflict(
    db: AsyncSession,
    doctor_id: UUID,
    start_time: datetime,
    end_time: datetime,
    clinic_id: UUID,
    exclude_appointment_id: Optional[UUID] = None,
) -> Optional[Appointment]:
    """Return the earliest active appointment of ``doctor_id`` overlapping the interval, if any."""
    conditions = [
        Appointment.clinic_id == clinic_id,
        Appointment.doctor_id == doctor_id,
        Appointment.status.not_in(INACTIVE_STATUSES),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    ]
    if exclude_appointment_id is not None:
        conditions.append(Appointment.id != exclude_appointment_id)

    result = await db.execute(
        select(Appointment)
        .where(and_(*conditions))
        .order_by(Appointment.start_time)
        .limit(1)
    )
    return result.scalars().first()


def conflict_summary(appointment: Appointment) -> dict:
    """Payload describing the clashing appointment, returned with a 409."""
    patient = appointment.patient
    return {
        "appointment_id": str(appointment.id),
        "start_time": appointment.start_time.isoformat(),
        "end_time": appointment.end_time.isoformat(),
        "patient_id": str(appointment.patient_id),
        "patient_name": patient.name if patient else None,
    }
