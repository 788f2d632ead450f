"""Twilio SMS service for appointment notices.

Patients get a short text alongside every appointment e-mail:
booking, reminder, reschedule and cancellation.
"""

import logging
from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
from clinic_api.core.config import settings

logger = logging.getLogger(__name__)

# Keyed by notification event value
SMS_TEMPLATES = {
    "confirmation": "Your appointment on {when} is booked.",
    "reminder": "Reminder: you have an appointment on {when}.",
    "reschedule": "Your appointment has been moved to {when}.",
    "cancellation": "Your appointment on {when} has been cancelled.",
}


def _get_twilio_client() -> Client:
    return Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)


def appointment_sms_body(event: str, details: dict) -> str:
    when = f"{details['date']} at {details['time']}"
    body = SMS_TEMPLATES.get(event, SMS_TEMPLATES["confirmation"]).format(when=when)
    if details.get("doctor"):
        body += f" Doctor: {details['doctor']}."
    return body


async def send_sms(to: str, body: str) -> bool:
    """Send an SMS via Twilio. Returns False if credentials are missing or Twilio fails."""
    if not all([settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, settings.TWILIO_PHONE_NUMBER]):
        logger.warning("Twilio credentials not configured. Skipping SMS to %s", to)
        return False

    try:
        client = _get_twilio_client()
        message = client.messages.create(
            body=body,
            from_=settings.TWILIO_PHONE_NUMBER,
            to=to,
        )
        logger.info("Appointment SMS sent to %s, SID: %s", to, message.sid)
        return True
    except TwilioRestException as e:
        logger.error("Twilio error sending SMS to %s: %s", to, e)
        return False
    except Exception as e:
        logger.error("Unexpected error sending SMS to %s: %s", to, e)
        return False
