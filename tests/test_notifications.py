"""Tests for best-effort email and SMS notifications."""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from clinic_api.services.email_service import EmailService
from clinic_api.services.notification_service import (
    AppointmentEvent,
    appointment_details,
    notify_appointment_event,
    send_to_recipient,
)
from clinic_api.services.sms import appointment_sms_body, send_sms


def fake_appointment():
    patient = SimpleNamespace(id="p1", name="Priya Patel", email="priya@example.com", phone="+919800000001")
    doctor = SimpleNamespace(id="d1", name="Dr. Meera Rao", email="meera@smiledental.test", phone=None)
    return SimpleNamespace(
        id="a1",
        start_time=datetime(2030, 1, 7, 10, 0),
        end_time=datetime(2030, 1, 7, 10, 30),
        service_type="Check-up",
        status="Scheduled",
        patient=patient,
        doctor=doctor,
    )


@pytest.mark.asyncio
async def test_sms_skipped_when_no_credentials():
    """SMS should gracefully return False when Twilio creds are empty."""
    assert await send_sms("+15551234567", "hello") is False


def twilio_configured():
    return patch.multiple(
        "clinic_api.services.sms.settings",
        TWILIO_ACCOUNT_SID="AC123",
        TWILIO_AUTH_TOKEN="secret",
        TWILIO_PHONE_NUMBER="+15550000000",
    )


@pytest.mark.asyncio
async def test_sms_sent_through_twilio():
    with twilio_configured(), patch("clinic_api.services.sms._get_twilio_client") as get_client:
        get_client.return_value.messages.create.return_value = MagicMock(sid="SM1")
        assert await send_sms("+15551234567", "hello") is True

    assert get_client.return_value.messages.create.call_args.kwargs["to"] == "+15551234567"


@pytest.mark.asyncio
async def test_sms_transport_error_returns_false():
    with twilio_configured(), patch(
        "clinic_api.services.sms._get_twilio_client", side_effect=ConnectionError("down")
    ):
        assert await send_sms("+15551234567", "hello") is False


@pytest.mark.asyncio
async def test_email_disabled_without_api_key():
    service = EmailService(api_key="")
    assert service.enabled is False
    assert await service.send_appointment_reminder("priya@example.com", {"date": "Monday"}) is False


@pytest.mark.asyncio
async def test_email_sent_through_sendgrid():
    with patch("clinic_api.services.email_service.SendGridAPIClient") as client_cls:
        client_cls.return_value.send.return_value = MagicMock(status_code=202)
        service = EmailService(api_key="SG.test")
        sent = await service.send_appointment_confirmation(
            "priya@example.com", appointment_details(fake_appointment())
        )

    assert sent is True
    message = client_cls.return_value.send.call_args.args[0]
    assert message.subject.subject == "Appointment Confirmed"


@pytest.mark.asyncio
async def test_sendgrid_error_returns_false():
    with patch("clinic_api.services.email_service.SendGridAPIClient") as client_cls:
        client_cls.return_value.send.side_effect = RuntimeError("boom")
        service = EmailService(api_key="SG.test")
        assert await service.send_email("priya@example.com", "Hi", "<p>Hi</p>") is False


def test_appointment_details():
    details = appointment_details(fake_appointment(), reason="Travelling", previous_time=None)
    assert details["date"] == "Monday, January 07, 2030"
    assert details["time"] == "10:00 - 10:30"
    assert details["doctor"] == "Dr. Meera Rao"
    assert details["reason"] == "Travelling"
    assert "previous_time" not in details


def test_sms_body_per_event():
    details = appointment_details(fake_appointment())
    assert appointment_sms_body("cancellation", details) == (
        "Your appointment on Monday, January 07, 2030 at 10:00 - 10:30 has been cancelled. Doctor: Dr. Meera Rao."
    )
    assert appointment_sms_body("reminder", details).startswith("Reminder:")


@pytest.mark.asyncio
async def test_send_to_recipient_uses_sms_when_asked():
    appointment = fake_appointment()
    with patch("clinic_api.services.notification_service.email_service") as email, \
         patch("clinic_api.services.notification_service.send_sms", new_callable=AsyncMock, return_value=True) as sms:
        email.send_appointment_reminder = AsyncMock(return_value=False)
        delivered = await send_to_recipient(
            AppointmentEvent.REMINDER, appointment.patient, appointment_details(appointment), sms=True
        )

    assert delivered is True
    assert "Reminder" in sms.await_args.args[1]


@pytest.mark.asyncio
async def test_notify_fans_out_to_patient_and_doctor():
    appointment = fake_appointment()
    with patch("clinic_api.services.notification_service.send_to_recipient", new_callable=AsyncMock) as send:
        await notify_appointment_event(AppointmentEvent.CANCELLATION, appointment)

    recipients = [call.args[1].name for call in send.await_args_list]
    assert recipients == ["Priya Patel", "Dr. Meera Rao"]
    assert send.await_args_list[0].kwargs["sms"] is True
    assert send.await_args_list[1].kwargs["sms"] is False


@pytest.mark.asyncio
async def test_notify_swallows_failures(caplog):
    appointment = fake_appointment()
    with patch(
        "clinic_api.services.notification_service.send_to_recipient",
        new_callable=AsyncMock,
        side_effect=RuntimeError("network down"),
    ):
        await notify_appointment_event(AppointmentEvent.RESCHEDULE, appointment, include_doctor=False)

    assert "network down" in caplog.text
