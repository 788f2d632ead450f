"""Pydantic schemas for Appointments."""

from datetime import datetime, date
from uuid import UUID
from pydantic import BaseModel, Field
from typing import Optional
from clinic_api.models.appointment import AppointmentStatus, AppointmentPriority


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment. The clinic is always the caller's clinic."""
    patient_id: UUID
    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    service_type: str = Field(min_length=1)
    reason: Optional[str] = None
    notes: Optional[str] = None
    priority: AppointmentPriority = AppointmentPriority.MEDIUM


class AppointmentUpdate(BaseModel):
    """Partial update; only fields that are sent are applied."""
    status: Optional[AppointmentStatus] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    doctor_id: Optional[UUID] = None
    service_type: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    priority: Optional[AppointmentPriority] = None


class AppointmentReschedule(BaseModel):
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = None


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None


class RescheduleEntry(BaseModel):
    previous_start: datetime
    previous_end: datetime
    rescheduled_by: Optional[UUID] = None
    rescheduled_at: datetime
    reason: Optional[str] = None


class AppointmentOut(BaseModel):
    """Schema for returning appointment details."""
    id: UUID
    clinic_id: UUID
    patient_id: UUID
    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    service_type: str
    reason: str
    priority: AppointmentPriority
    notes: Optional[str] = None
    reschedule_history: list[RescheduleEntry] = []
    cancelled_by: Optional[UUID] = None
    cancellation_reason: Optional[str] = None
    reminder_sent: bool = False
    reminder_time: Optional[datetime] = None
    created_by: Optional[UUID] = None
    modified_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SlotOut(BaseModel):
    start_time: datetime
    end_time: datetime


class AvailableSlotsResponse(BaseModel):
    """Schema for available slots response."""
    doctor_id: UUID
    date: date
    slots: list[SlotOut]


class CountBucket(BaseModel):
    key: Optional[str]
    count: int


class AppointmentStats(BaseModel):
    total: int
    start: datetime
    end: datetime
    by_status: list[CountBucket]
    by_service_type: list[CountBucket]
    by_doctor: list[CountBucket]
    daily: list[CountBucket]
