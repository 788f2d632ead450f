"""Appointment notification fan-out.

Notifications are a side effect of the primary operation: every failure is
logged here and swallowed, so a booking or reschedule never fails because an
email or SMS could not be delivered.
"""

import enum
import logging
from typing import Optional

from clinic_api.models.appointment import Appointment
from clinic_api.models.user import User
from clinic_api.services.email_service import email_service
from clinic_api.services.sms import appointment_sms_body, send_sms

logger = logging.getLogger(__name__)


class AppointmentEvent(str, enum.Enum):
    CONFIRMATION = "confirmation"
    REMINDER = "reminder"
    CANCELLATION = "cancellation"
    RESCHEDULE = "reschedule"


_EMAIL_SENDERS = {
    AppointmentEvent.CONFIRMATION: "send_appointment_confirmation",
    AppointmentEvent.REMINDER: "send_appointment_reminder",
    AppointmentEvent.CANCELLATION: "send_appointment_cancellation",
    AppointmentEvent.RESCHEDULE: "send_appointment_reschedule",
}


def appointment_details(appointment: Appointment, **extra) -> dict:
    """Human-readable summary used in email and SMS bodies."""
    doctor = appointment.doctor
    details = {
        "date": appointment.start_time.strftime("%A, %B %d, %Y"),
        "time": f"{appointment.start_time:%H:%M} - {appointment.end_time:%H:%M}",
        "doctor": doctor.name if doctor else None,
        "service": appointment.service_type,
        "status": appointment.status.value if hasattr(appointment.status, "value") else appointment.status,
    }
    details.update({k: v for k, v in extra.items() if v is not None})
    return details


async def send_to_recipient(event: AppointmentEvent, recipient: User, details: dict, sms: bool = False) -> bool:
    """Deliver one event to one user. Returns True if any channel succeeded."""
    sender = getattr(email_service, _EMAIL_SENDERS[event])
    delivered = False
    if recipient.email:
        delivered = await sender(recipient.email, details)
    if sms and recipient.phone:
        delivered = await send_sms(recipient.phone, appointment_sms_body(event.value, details)) or delivered
    return delivered


async def notify_appointment_event(
    event: AppointmentEvent,
    appointment: Appointment,
    include_doctor: bool = True,
    details: Optional[dict] = None,
) -> None:
    """Notify the patient (email + SMS) and doctor (email) about an appointment event."""
    details = details or appointment_details(appointment)
    recipients = [(appointment.patient, True)]
    if include_doctor:
        recipients.append((appointment.doctor, False))

    for recipient, sms in recipients:
        if recipient is None:
            continue
        try:
            await send_to_recipient(event, recipient, details, sms=sms)
        except Exception as e:
            logger.error(
                "Failed to send %s notification for appointment %s to %s: %s",
                event.value, appointment.id, recipient.id, e,
            )
