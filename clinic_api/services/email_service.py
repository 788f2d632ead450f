"""Email notification service using SendGrid."""

import logging
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from clinic_api.core.config import settings

logger = logging.getLogger(__name__)


def _details_rows(details: dict) -> tuple[str, str]:
    """Render appointment details as HTML paragraphs and plain text lines."""
    labels = (
        ("date", "Date"),
        ("time", "Time"),
        ("doctor", "Doctor"),
        ("service", "Service"),
        ("status", "Status"),
        ("previous_time", "Previously"),
        ("reason", "Reason"),
    )
    html_rows = []
    plain_rows = []
    for key, label in labels:
        value = details.get(key)
        if value:
            html_rows.append(f"<p><strong>{label}:</strong> {value}</p>")
            plain_rows.append(f"{label}: {value}")
    return "\n".join(html_rows), "\n".join(plain_rows)


class EmailService:
    """Email service for sending appointment notifications."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = settings.SENDGRID_FROM_EMAIL
        self.from_name = settings.SENDGRID_FROM_NAME

        if not self.api_key:
            logger.warning("SENDGRID_API_KEY not configured. Emails will not be sent.")
            self.enabled = False
        else:
            self.client = SendGridAPIClient(self.api_key)
            self.enabled = True
            logger.info("Email service initialized successfully")

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        plain_body: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.info("Email service disabled. Would have sent to %s: %s", to, subject)
            return False

        try:
            message = Mail(
                from_email=(self.from_email, self.from_name),
                to_emails=to,
                subject=subject,
                html_content=html_body,
            )

            if plain_body:
                message.plain_text_content = plain_body

            response = self.client.send(message)

            if 200 <= response.status_code < 300:
                logger.info("Email sent successfully to %s: %s", to, subject)
                return True

            logger.error("Failed to send email to %s: %s %s", to, response.status_code, response.body)
            return False

        except Exception as e:
            logger.error("Error sending email to %s: %s", to, e)
            return False

    async def _send_appointment_email(self, recipient: str, subject: str, heading: str, intro: str, details: dict) -> bool:
        html_rows, plain_rows = _details_rows(details)
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
                <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                    <h2 style="color: #2A7F62;">{heading}</h2>

                    <p>{intro}</p>

                    <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">
                        {html_rows}
                    </div>

                    <p style="color: #666; font-size: 14px; margin-top: 40px;">
                        If you need to reschedule or have any questions, please contact the clinic.
                    </p>
                </div>
            </body>
        </html>
        """
        plain_body = f"{heading}\n\n{intro}\n\n{plain_rows}\n"
        return await self.send_email(recipient, subject, html_body, plain_body)

    async def send_appointment_confirmation(self, recipient: str, details: dict) -> bool:
        """Booking confirmation, also used for status and time change notices."""
        change = details.get("type")
        if change == "status_change":
            heading = "Appointment Status Updated"
            intro = f"Your appointment status changed from {details.get('old_status')} to {details.get('status')}."
        elif change == "time_change":
            heading = "Appointment Time Updated"
            intro = "The time of your appointment has changed."
        else:
            heading = "Appointment Confirmed"
            intro = "Your appointment has been booked."
        return await self._send_appointment_email(recipient, heading, heading, intro, details)

    async def send_appointment_reminder(self, recipient: str, details: dict) -> bool:
        return await self._send_appointment_email(
            recipient,
            "Appointment Reminder",
            "Appointment Reminder",
            "This is a reminder of your upcoming appointment.",
            details,
        )

    async def send_appointment_cancellation(self, recipient: str, details: dict) -> bool:
        return await self._send_appointment_email(
            recipient,
            "Appointment Cancelled",
            "Appointment Cancelled",
            "Your appointment has been cancelled.",
            details,
        )

    async def send_appointment_reschedule(self, recipient: str, details: dict) -> bool:
        return await self._send_appointment_email(
            recipient,
            "Appointment Rescheduled",
            "Appointment Rescheduled",
            "Your appointment has been moved to a new time.",
            details,
        )


# Global email service instance
email_service = EmailService()
