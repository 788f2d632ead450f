"""Appointment booking, lifecycle and availability endpoints."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.database import get_db
from clinic_api.core.dependencies import ActingUser, get_acting_user
from clinic_api.core.subscription_gate import require_feature
from clinic_api.models.appointment import AppointmentStatus
from clinic_api.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentOut,
    AppointmentReschedule,
    AppointmentStats,
    AppointmentUpdate,
    AvailableSlotsResponse,
    SlotOut,
)
from clinic_api.services import appointments as appointment_service
from clinic_api.services.slots import list_available_slots

router = APIRouter(dependencies=[Depends(require_feature("appointments"))])


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    data: AppointmentCreate,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Book an appointment. 409 if the doctor is already booked for any part of the interval."""
    return await appointment_service.book_appointment(db, acting_user, data)


@router.get("", response_model=list[AppointmentOut])
async def list_appointments(
    doctor_id: Optional[UUID] = None,
    patient_id: Optional[UUID] = None,
    status: Optional[AppointmentStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_service.list_appointments(
        db, acting_user,
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/stats", response_model=AppointmentStats)
async def appointment_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_service.appointment_stats(db, acting_user, start_date, end_date)


@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def available_slots(
    doctor_id: UUID,
    day: date = Query(..., alias="date", description="Date in YYYY-MM-DD format"),
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Open slots for a doctor on one day, using the clinic's working hours."""
    slots = await list_available_slots(db, acting_user, doctor_id, day)
    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        date=day,
        slots=[SlotOut(start_time=slot.start, end_time=slot.end) for slot in slots],
    )


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(
    appointment_id: UUID,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_service.get_appointment(db, acting_user, appointment_id)


@router.patch("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment(
    appointment_id: UUID,
    changes: AppointmentUpdate,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_service.update_appointment(db, acting_user, appointment_id, changes)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentOut)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_service.reschedule_appointment(
        db, acting_user, appointment_id, data.start_time, data.end_time, data.reason
    )


@router.post("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel_appointment(
    appointment_id: UUID,
    data: Optional[AppointmentCancel] = None,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    reason = data.reason if data else None
    return await appointment_service.cancel_appointment(db, acting_user, appointment_id, reason)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: UUID,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    await appointment_service.delete_appointment(db, acting_user, appointment_id)


@router.post("/{appointment_id}/reminder", response_model=AppointmentOut)
async def send_reminder(
    appointment_id: UUID,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_service.send_reminder(db, acting_user, appointment_id)
