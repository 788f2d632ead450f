"""Appointment booking, updates, rescheduling and reporting.

Every operation is scoped to the acting user's clinic. Time changes go through
``validate_time_slot`` and ``find_conflict`` before anything is written.

Known gap: conflict-check-then-write is serialised per doctor with an
in-process lock. Two API processes can still double-book the same doctor; a
database exclusion constraint on (doctor_id, tsrange) would close that.
"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.dependencies import ActingUser
from clinic_api.core.errors import (
    ConflictError,
    Forbidden,
    IllegalTransition,
    NotFound,
    NotificationFailed,
    ValidationError,
)
from clinic_api.models.appointment import Appointment, AppointmentStatus
from clinic_api.models.user import User, UserRole
from clinic_api.schemas.appointment import AppointmentCreate, AppointmentUpdate
from clinic_api.services.appointment_rules import (
    STAFF_ROLES,
    TERMINAL_STATUSES,
    can_delete,
    check_access,
    check_status_change,
)
from clinic_api.services.conflicts import conflict_summary, find_conflict
from clinic_api.services.notification_service import (
    AppointmentEvent,
    appointment_details,
    notify_appointment_event,
    send_to_recipient,
)
from clinic_api.services.repository import ClinicScope
from clinic_api.services.time_slots import validate_time_slot

logger = logging.getLogger(__name__)

_doctor_locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()


def doctor_lock(doctor_id: UUID) -> asyncio.Lock:
    """Lock serialising conflict detection and write for one doctor."""
    lock = _doctor_locks.get(doctor_id)
    if lock is None:
        lock = asyncio.Lock()
        _doctor_locks[doctor_id] = lock
    return lock


async def _ensure_no_conflict(
    db: AsyncSession,
    clinic_id: UUID,
    doctor_id: UUID,
    start: datetime,
    end: datetime,
    exclude_appointment_id: Optional[UUID] = None,
) -> None:
    conflict = await find_conflict(db, doctor_id, start, end, clinic_id, exclude_appointment_id)
    if conflict is not None:
        logger.info(
            "Rejected booking for doctor %s %s-%s: overlaps appointment %s",
            doctor_id, start, end, conflict.id,
        )
        raise ConflictError(
            "Doctor already has an appointment during this time",
            conflict=conflict_summary(conflict),
        )


async def _notifications_enabled(scope: ClinicScope) -> bool:
    clinic = await scope.clinic()
    return clinic is None or clinic.notifications_enabled is not False


# ============================================================================
# BOOKING
# ============================================================================

async def book_appointment(db: AsyncSession, acting_user: ActingUser, data: AppointmentCreate) -> Appointment:
    """Book a new appointment in the caller's clinic."""
    scope = ClinicScope.for_user(db, acting_user)

    if acting_user.role == UserRole.PATIENT.value and data.patient_id != acting_user.id:
        raise Forbidden("Patients can only book appointments for themselves")

    start, end = validate_time_slot(data.start_time, data.end_time)

    patient = await scope.get_user(data.patient_id, role=UserRole.PATIENT.value)
    if patient is None:
        raise NotFound("Patient not found in this clinic")
    doctor = await scope.get_user(data.doctor_id, role=UserRole.DOCTOR.value)
    if doctor is None:
        raise NotFound("Doctor not found in this clinic")

    async with doctor_lock(doctor.id):
        await _ensure_no_conflict(db, scope.clinic_id, doctor.id, start, end)

        appointment = Appointment(
            clinic_id=scope.clinic_id,
            patient_id=patient.id,
            doctor_id=doctor.id,
            start_time=start,
            end_time=end,
            service_type=data.service_type,
            reason=data.reason or data.notes or data.service_type,
            notes=data.notes,
            priority=data.priority,
            status=AppointmentStatus.SCHEDULED,
            reschedule_history=[],
            created_by=acting_user.id,
        )
        db.add(appointment)
        await db.commit()

    appointment = await scope.get_appointment(appointment.id)
    logger.info(
        "Appointment %s booked: doctor=%s patient=%s %s-%s",
        appointment.id, doctor.id, patient.id, start, end,
    )

    if await _notifications_enabled(scope):
        await notify_appointment_event(AppointmentEvent.CONFIRMATION, appointment)

    return appointment


# ============================================================================
# READS
# ============================================================================

async def get_appointment(db: AsyncSession, acting_user: ActingUser, appointment_id: UUID) -> Appointment:
    appointment = await ClinicScope.for_user(db, acting_user).get_appointment(appointment_id)
    check_access(appointment, acting_user, "view")
    return appointment


async def list_appointments(
    db: AsyncSession,
    acting_user: ActingUser,
    doctor_id: Optional[UUID] = None,
    patient_id: Optional[UUID] = None,
    status: Optional[AppointmentStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> list[Appointment]:
    """List the clinic's appointments; doctors and patients only see their own."""
    query = ClinicScope.for_user(db, acting_user).appointments()

    if acting_user.role == UserRole.DOCTOR.value:
        doctor_id = acting_user.id
    elif acting_user.role == UserRole.PATIENT.value:
        patient_id = acting_user.id

    if doctor_id:
        query = query.where(Appointment.doctor_id == doctor_id)
    if patient_id:
        query = query.where(Appointment.patient_id == patient_id)
    if status:
        query = query.where(Appointment.status == status)
    if start_date:
        query = query.where(Appointment.start_time >= start_date)
    if end_date:
        query = query.where(Appointment.start_time <= end_date)

    result = await db.execute(query.order_by(Appointment.start_time))
    return list(result.scalars().all())


# ============================================================================
# UPDATES
# ============================================================================

async def update_appointment(
    db: AsyncSession,
    acting_user: ActingUser,
    appointment_id: UUID,
    changes: AppointmentUpdate,
) -> Appointment:
    """Apply a partial update, enforcing the status machine and re-checking time changes."""
    scope = ClinicScope.for_user(db, acting_user)
    appointment = await scope.get_appointment(appointment_id)
    check_access(appointment, acting_user, "update")

    data = changes.model_dump(exclude_unset=True)
    new_status = data.get("status")
    if new_status is not None:
        check_status_change(appointment, acting_user, new_status)

    old_status = AppointmentStatus(appointment.status)
    old_start, old_end = appointment.start_time, appointment.end_time
    reschedules = any(data.get(key) is not None for key in ("start_time", "end_time", "doctor_id"))

    if reschedules:
        start, end = validate_time_slot(
            data.get("start_time") or appointment.start_time,
            data.get("end_time") or appointment.end_time,
        )
        doctor_id = data.get("doctor_id") or appointment.doctor_id
        if doctor_id != appointment.doctor_id:
            if await scope.get_user(doctor_id, role=UserRole.DOCTOR.value) is None:
                raise NotFound("New doctor not found in this clinic")
        data.update(start_time=start, end_time=end, doctor_id=doctor_id)

        async with doctor_lock(doctor_id):
            await _ensure_no_conflict(db, scope.clinic_id, doctor_id, start, end, appointment.id)
            _apply_changes(appointment, data, acting_user)
            await db.commit()
    else:
        _apply_changes(appointment, data, acting_user)
        await db.commit()

    appointment = await scope.get_appointment(appointment.id)
    logger.info("Appointment %s updated by %s (%s)", appointment.id, acting_user.id, ", ".join(sorted(data)))

    if await _notifications_enabled(scope):
        modified_by = f"{acting_user.role} - {acting_user.name}"
        if new_status is not None and new_status != old_status:
            await notify_appointment_event(
                AppointmentEvent.CONFIRMATION,
                appointment,
                details=appointment_details(
                    appointment, type="status_change", old_status=old_status.value, modified_by=modified_by
                ),
            )
        if appointment.start_time != old_start or appointment.end_time != old_end:
            await notify_appointment_event(
                AppointmentEvent.CONFIRMATION,
                appointment,
                details=appointment_details(
                    appointment,
                    type="time_change",
                    previous_time=f"{old_start:%Y-%m-%d %H:%M} - {old_end:%H:%M}",
                    modified_by=modified_by,
                ),
            )

    return appointment


def _apply_changes(appointment: Appointment, data: dict, acting_user: ActingUser) -> None:
    for key, value in data.items():
        if value is not None:
            setattr(appointment, key, value)
    if data.get("status") == AppointmentStatus.CANCELLED:
        appointment.cancelled_by = acting_user.id
    appointment.modified_by = acting_user.id
    appointment.updated_at = datetime.utcnow()


async def reschedule_appointment(
    db: AsyncSession,
    acting_user: ActingUser,
    appointment_id: UUID,
    new_start: datetime,
    new_end: datetime,
    reason: Optional[str] = None,
) -> Appointment:
    """Move an appointment to a new interval, recording the old one in its history."""
    scope = ClinicScope.for_user(db, acting_user)
    appointment = await scope.get_appointment(appointment_id)
    check_access(appointment, acting_user, "reschedule")

    current = AppointmentStatus(appointment.status)
    if current in TERMINAL_STATUSES:
        raise IllegalTransition(f"Cannot reschedule an appointment that is {current.value}")

    start, end = validate_time_slot(new_start, new_end)

    async with doctor_lock(appointment.doctor_id):
        await _ensure_no_conflict(db, scope.clinic_id, appointment.doctor_id, start, end, appointment.id)

        entry = {
            "previous_start": appointment.start_time.isoformat(),
            "previous_end": appointment.end_time.isoformat(),
            "rescheduled_by": str(acting_user.id),
            "rescheduled_at": datetime.utcnow().isoformat(),
            "reason": reason or "No reason provided",
        }
        # Reassign so the JSON column is flagged dirty
        appointment.reschedule_history = [*(appointment.reschedule_history or []), entry]
        appointment.start_time = start
        appointment.end_time = end
        appointment.status = AppointmentStatus.RESCHEDULED
        appointment.modified_by = acting_user.id
        appointment.updated_at = datetime.utcnow()
        await db.commit()

    appointment = await scope.get_appointment(appointment.id)
    logger.info("Appointment %s rescheduled to %s-%s by %s", appointment.id, start, end, acting_user.id)

    if await _notifications_enabled(scope):
        await notify_appointment_event(
            AppointmentEvent.RESCHEDULE,
            appointment,
            include_doctor=False,
            details=appointment_details(
                appointment,
                previous_time=f"{entry['previous_start']} - {entry['previous_end']}",
                reason=entry["reason"],
            ),
        )

    return appointment


async def cancel_appointment(
    db: AsyncSession,
    acting_user: ActingUser,
    appointment_id: UUID,
    reason: Optional[str] = None,
) -> Appointment:
    """Cancel through the status machine, keeping the record."""
    scope = ClinicScope.for_user(db, acting_user)
    appointment = await scope.get_appointment(appointment_id)
    check_access(appointment, acting_user, "cancel")
    check_status_change(appointment, acting_user, AppointmentStatus.CANCELLED)

    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancelled_by = acting_user.id
    appointment.cancellation_reason = reason
    appointment.modified_by = acting_user.id
    appointment.updated_at = datetime.utcnow()
    await db.commit()

    appointment = await scope.get_appointment(appointment.id)
    logger.info("Appointment %s cancelled by %s", appointment.id, acting_user.id)

    if await _notifications_enabled(scope):
        await notify_appointment_event(
            AppointmentEvent.CANCELLATION,
            appointment,
            details=appointment_details(appointment, reason=reason),
        )

    return appointment


async def delete_appointment(db: AsyncSession, acting_user: ActingUser, appointment_id: UUID) -> None:
    """Physically remove an appointment (administrative cleanup)."""
    scope = ClinicScope.for_user(db, acting_user)
    appointment = await scope.get_appointment(appointment_id)
    if not can_delete(appointment, acting_user):
        raise Forbidden("You do not have permission to delete this appointment")

    details = appointment_details(appointment, status=AppointmentStatus.CANCELLED.value)
    await db.delete(appointment)
    await db.commit()
    logger.info("Appointment %s deleted by %s", appointment_id, acting_user.id)

    if await _notifications_enabled(scope):
        await notify_appointment_event(AppointmentEvent.CANCELLATION, appointment, details=details)


async def send_reminder(db: AsyncSession, acting_user: ActingUser, appointment_id: UUID) -> Appointment:
    """Send a reminder to the patient. Delivery is the point here, so failure is an error."""
    if acting_user.role not in STAFF_ROLES:
        raise Forbidden("You do not have permission to send reminders")

    scope = ClinicScope.for_user(db, acting_user)
    appointment = await scope.get_appointment(appointment_id)

    if appointment.start_time < datetime.utcnow():
        raise ValidationError("Cannot send reminder for past appointments")

    delivered = await send_to_recipient(
        AppointmentEvent.REMINDER, appointment.patient, appointment_details(appointment), sms=True
    )
    if not delivered:
        raise NotificationFailed("Failed to send reminder")

    appointment.reminder_sent = True
    appointment.reminder_time = datetime.utcnow()
    appointment.updated_at = datetime.utcnow()
    await db.commit()
    return await scope.get_appointment(appointment.id)


# ============================================================================
# STATISTICS
# ============================================================================

async def appointment_stats(
    db: AsyncSession,
    acting_user: ActingUser,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> dict:
    """Counts by status, service type, doctor and day. Defaults to the last 30 days."""
    if acting_user.role == UserRole.PATIENT.value:
        raise Forbidden("You do not have permission to view appointment statistics")

    now = datetime.utcnow()
    start = start_date or now - timedelta(days=30)
    end = end_date or now
    end = end.replace(hour=23, minute=59, second=59, microsecond=999999)

    window = and_(
        Appointment.clinic_id == acting_user.clinic_id,
        Appointment.start_time >= start,
        Appointment.start_time <= end,
    )

    async def grouped(column, *joins):
        query = select(column, func.count(Appointment.id)).select_from(Appointment)
        for target, onclause in joins:
            query = query.join(target, onclause)
        result = await db.execute(query.where(window).group_by(column).order_by(column))
        return [{"key": _bucket_key(key), "count": count} for key, count in result.all()]

    total = (await db.execute(select(func.count(Appointment.id)).where(window))).scalar() or 0

    return {
        "total": total,
        "start": start,
        "end": end,
        "by_status": await grouped(Appointment.status),
        "by_service_type": await grouped(Appointment.service_type),
        "by_doctor": await grouped(User.name, (User, User.id == Appointment.doctor_id)),
        "daily": await grouped(func.date(Appointment.start_time)),
    }


def _bucket_key(key) -> Optional[str]:
    if key is None:
        return None
    if hasattr(key, "value"):
        return key.value
    if hasattr(key, "isoformat"):
        return key.isoformat()
    return str(key)
