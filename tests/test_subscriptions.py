"""Tests for the subscription lifecycle, clinic snapshot and feature gate."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select, func

from clinic_api.core.errors import DuplicateActiveSubscription, Forbidden
from clinic_api.core.subscription_gate import check_resource_limit, ensure_subscription_active
from clinic_api.models.invoice import Invoice
from clinic_api.models.subscription import Subscription
from clinic_api.models.user import UserRole
from clinic_api.services.subscriptions import (
    cancel_subscription,
    change_plan,
    create_subscription,
    cycle_end,
    get_clinic_subscription,
    remaining_days,
    renew_subscription,
)

from conftest import acting, auth_headers, make_clinic, make_user

BASE = "/api/v1/subscriptions"


async def count(db, model):
    return (await db.execute(select(func.count(model.id)))).scalar_one()


def test_cycle_end_uses_calendar_months():
    start = datetime(2024, 1, 31)
    assert cycle_end(start, "monthly") == datetime(2024, 2, 29)
    assert cycle_end(start, "quarterly") == datetime(2024, 4, 30)
    assert cycle_end(start, "annual") == datetime(2025, 1, 31)
    assert cycle_end(start, "weekly") == datetime(2024, 2, 29)


def test_remaining_days():
    now = datetime(2030, 1, 1)
    sub = Subscription(end_date=now + timedelta(days=10, hours=1))
    assert remaining_days(sub, now) == 10
    assert remaining_days(Subscription(end_date=now - timedelta(days=1)), now) == 0


# ============================================================================
# CREATE
# ============================================================================

@pytest.mark.asyncio
async def test_create_trial_subscription_with_invoice(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")

    assert sub.status == "trial"
    assert sub.is_in_trial is True
    assert sub.trial_ends_at - sub.start_date == timedelta(days=14)
    assert sub.price == {"amount": 1499, "currency": "INR", "discount": 0}
    assert sub.history[0]["action"] == "created"

    # Invoice is issued even while in trial
    invoices = (await db.execute(select(Invoice).where(Invoice.subscription_id == sub.id))).scalars().all()
    assert len(invoices) == 1
    invoice = invoices[0]
    assert invoice.invoice_number.startswith("SUB-")
    assert invoice.status == "paid"
    assert invoice.total == 1499
    assert sub.invoices[0]["invoice_id"] == str(invoice.id)

    await db.refresh(clinic)
    assert clinic.subscription_plan == "Basic"
    assert clinic.features["max_doctors"] == 3
    assert clinic.subscription["status"] == "trial"
    assert clinic.subscription["last_payment"] is not None


@pytest.mark.asyncio
async def test_free_plan_is_active_without_invoice(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Free", "annual")
    assert sub.status == "active"
    assert sub.is_in_trial is False
    assert sub.invoices == []
    assert await count(db, Invoice) == 0


@pytest.mark.asyncio
async def test_quarterly_invoice_applies_discount(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Premium", "quarterly")
    invoice = (await db.execute(select(Invoice))).scalar_one()
    discount_pct = sub.price["discount"]
    assert invoice.subtotal == 10999
    assert invoice.discount == pytest.approx(10999 * discount_pct / 100)
    assert invoice.total == pytest.approx(10999 - invoice.discount)


@pytest.mark.asyncio
async def test_duplicate_active_subscription(db, clinic, admin):
    await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    subs_before = await count(db, Subscription)
    invoices_before = await count(db, Invoice)

    with pytest.raises(DuplicateActiveSubscription):
        await create_subscription(db, acting(admin), clinic.id, "Premium", "monthly")

    assert await count(db, Subscription) == subs_before
    assert await count(db, Invoice) == invoices_before


@pytest.mark.asyncio
async def test_other_clinic_member_is_forbidden(db, clinic, other_clinic):
    outsider = await make_user(db, other_clinic, UserRole.RECEPTIONIST, "Outside Desk")
    with pytest.raises(Forbidden):
        await create_subscription(db, acting(outsider), clinic.id, "Basic", "monthly")


# ============================================================================
# RENEW / CHANGE / CANCEL
# ============================================================================

@pytest.mark.asyncio
async def test_renew_ends_trial(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Basic", "quarterly")
    sub = await renew_subscription(db, acting(admin), sub.id, payment_method="upi")

    assert sub.status == "active"
    assert sub.is_in_trial is False
    assert sub.trial_ends_at is None
    assert sub.payment_method == "upi"
    assert sub.end_date == cycle_end(sub.start_date, "quarterly")
    assert [h["action"] for h in sub.history] == ["created", "renewed"]

    numbers = (await db.execute(select(Invoice.invoice_number))).scalars().all()
    assert any(n.startswith("SUB-RNW-") for n in numbers)
    assert len(sub.invoices) == 2


@pytest.mark.asyncio
async def test_change_plan_exits_trial(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Free", "monthly")
    sub = await change_plan(db, acting(admin), sub.id, "Premium", "annual")

    assert sub.plan == "Premium"
    assert sub.status == "active"
    assert sub.is_in_trial is False
    assert sub.billing_cycle == "annual"
    assert sub.price["amount"] == 39999

    invoice = (await db.execute(select(Invoice))).scalar_one()
    assert invoice.invoice_number.startswith("SUB-CHG-")

    await db.refresh(clinic)
    assert clinic.subscription_plan == "Premium"
    assert clinic.features["max_doctors"] == 10
    assert "analytics" in clinic.features["allowed_modules"]
    assert clinic.subscription["status"] == "active"


@pytest.mark.asyncio
async def test_change_to_free_issues_no_invoice(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Free", "monthly")
    await change_plan(db, acting(admin), sub.id, "Free", "annual")
    assert await count(db, Invoice) == 0


@pytest.mark.asyncio
async def test_cancel_keeps_end_date(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    end_date = sub.end_date

    sub = await cancel_subscription(db, acting(admin), sub.id)
    assert sub.status == "cancelled"
    assert sub.cancellation_reason == "User cancelled"
    assert sub.cancelled_at is not None
    assert sub.end_date == end_date

    await db.refresh(clinic)
    assert clinic.subscription["status"] == "cancelled"

    # A new subscription is allowed once the old one is cancelled
    await create_subscription(db, acting(admin), clinic.id, "Premium", "monthly")


@pytest.mark.asyncio
async def test_renewing_cancelled_while_another_is_live(db, clinic, admin):
    old = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    await cancel_subscription(db, acting(admin), old.id, "Switching")
    await create_subscription(db, acting(admin), clinic.id, "Premium", "monthly")

    with pytest.raises(DuplicateActiveSubscription):
        await renew_subscription(db, acting(admin), old.id)


@pytest.mark.asyncio
async def test_changing_plan_of_cancelled_while_another_is_live(db, clinic, admin):
    old = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    await cancel_subscription(db, acting(admin), old.id, "Switching")
    await create_subscription(db, acting(admin), clinic.id, "Premium", "monthly")

    with pytest.raises(DuplicateActiveSubscription):
        await change_plan(db, acting(admin), old.id, "Enterprise", "annual")

    await db.rollback()
    live = (await db.execute(
        select(Subscription.plan).where(
            Subscription.clinic_id == clinic.id, Subscription.status.in_(("active", "trial"))
        )
    )).scalars().all()
    assert live == ["Premium"]


@pytest.mark.asyncio
async def test_cancelling_stale_subscription_keeps_live_snapshot(db, clinic, admin):
    old = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    await cancel_subscription(db, acting(admin), old.id, "Switching")
    current = await create_subscription(db, acting(admin), clinic.id, "Premium", "monthly")

    await cancel_subscription(db, acting(admin), old.id, "Cleanup")

    await db.refresh(clinic)
    assert clinic.subscription_plan == "Premium"
    assert clinic.subscription["subscription_id"] == str(current.id)
    assert clinic.subscription["status"] == "trial"
    await ensure_subscription_active(db, clinic, "appointments")


# ============================================================================
# READS
# ============================================================================

@pytest.mark.asyncio
async def test_free_default_is_created_when_none_exists(db, clinic, receptionist):
    sub = await get_clinic_subscription(db, acting(receptionist), clinic.id)
    assert sub.plan == "Free"
    assert sub.status == "active"
    assert sub.billing_cycle == "annual"
    assert sub.end_date.year - sub.start_date.year == 100

    again = await get_clinic_subscription(db, acting(receptionist), clinic.id)
    assert again.id == sub.id


@pytest.mark.asyncio
async def test_latest_subscription_returned_when_none_live(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    await cancel_subscription(db, acting(admin), sub.id)

    current = await get_clinic_subscription(db, acting(admin), clinic.id)
    assert current.id == sub.id
    assert current.status == "cancelled"


# ============================================================================
# FEATURE GATE
# ============================================================================

@pytest.mark.asyncio
async def test_gate_blocks_modules_outside_plan(db, clinic, admin):
    await create_subscription(db, acting(admin), clinic.id, "Free", "monthly")
    await db.refresh(clinic)

    await ensure_subscription_active(db, clinic, "appointments")
    with pytest.raises(Forbidden):
        await ensure_subscription_active(db, clinic, "analytics")


@pytest.mark.asyncio
async def test_gate_accepts_trial(db, clinic, admin):
    await create_subscription(db, acting(admin), clinic.id, "Premium", "monthly")
    await db.refresh(clinic)
    await ensure_subscription_active(db, clinic, "analytics")


@pytest.mark.asyncio
async def test_gate_expires_lapsed_subscription(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    lapsed = datetime.utcnow() - timedelta(days=1)
    clinic.subscription = {**clinic.subscription, "end_date": lapsed.isoformat()}
    await db.commit()

    with pytest.raises(Forbidden):
        await ensure_subscription_active(db, clinic, "appointments")

    await db.refresh(clinic)
    await db.refresh(sub)
    assert clinic.status == "suspended"
    assert clinic.subscription["status"] == "expired"
    assert sub.status == "expired"


@pytest.mark.asyncio
async def test_gate_rejects_cancelled_and_suspended(db, clinic, admin):
    sub = await create_subscription(db, acting(admin), clinic.id, "Basic", "monthly")
    await cancel_subscription(db, acting(admin), sub.id)
    await db.refresh(clinic)
    with pytest.raises(Forbidden):
        await ensure_subscription_active(db, clinic)

    suspended = await make_clinic(db, name="Suspended", status="suspended")
    with pytest.raises(Forbidden):
        await ensure_subscription_active(db, suspended)


@pytest.mark.asyncio
async def test_resource_limit_counts_clinic_users(db, clinic, admin, doctor):
    await create_subscription(db, acting(admin), clinic.id, "Free", "monthly")
    await db.refresh(clinic)

    # Free allows a single doctor
    with pytest.raises(Forbidden):
        await check_resource_limit(db, clinic, "doctors")
    await check_resource_limit(db, clinic, "patients")


@pytest.mark.asyncio
async def test_gate_blocks_appointment_routes_for_suspended_clinic(client, db):
    suspended = await make_clinic(db, name="Suspended", status="suspended")
    desk = await make_user(db, suspended, UserRole.RECEPTIONIST, "Idle Desk")

    resp = await client.get("/api/v1/appointments", headers=auth_headers(desk))
    assert resp.status_code == 403


# ============================================================================
# API
# ============================================================================

@pytest.mark.asyncio
async def test_plans_endpoints(client):
    resp = await client.get(f"{BASE}/plans")
    assert resp.status_code == 200
    assert [p["name"] for p in resp.json()] == ["Free", "Basic", "Premium", "Enterprise"]

    resp = await client.get(f"{BASE}/plans/Enterprise")
    assert resp.json()["trial_days"] == 30

    resp = await client.get(f"{BASE}/plans/Platinum")
    assert resp.status_code == 404
    assert resp.json()["code"] == "PlanNotFound"


@pytest.mark.asyncio
async def test_subscription_api_flow(client, clinic, admin):
    headers = auth_headers(admin)

    resp = await client.post(
        BASE,
        json={"clinic_id": str(clinic.id), "plan": "Basic", "billing_cycle": "monthly", "payment_method": "upi"},
        headers=headers,
    )
    assert resp.status_code == 201
    sub = resp.json()
    assert sub["status"] == "trial"
    assert sub["remaining_days"] >= 27

    resp = await client.post(
        BASE, json={"clinic_id": str(clinic.id), "plan": "Premium"}, headers=headers
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "DuplicateActiveSubscription"

    resp = await client.post(
        f"{BASE}/{sub['id']}/change-plan", json={"plan": "Premium", "billing_cycle": "annual"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["plan"] == "Premium"

    resp = await client.post(f"{BASE}/{sub['id']}/renew", json={}, headers=headers)
    assert resp.status_code == 200

    resp = await client.get(f"{BASE}/{sub['id']}/invoices", headers=headers)
    numbers = [i["invoice_number"] for i in resp.json()]
    assert len(numbers) == 3
    assert {n.rsplit("-", 2)[0] for n in numbers} == {"SUB", "SUB-CHG", "SUB-RNW"}

    resp = await client.post(f"{BASE}/{sub['id']}/cancel", json={"reason": "Closing"}, headers=headers)
    assert resp.json()["status"] == "cancelled"

    resp = await client.get(f"{BASE}/history/{clinic.id}", headers=headers)
    assert len(resp.json()) == 1
    assert [h["action"] for h in resp.json()[0]["history"]] == ["created", "plan_changed", "renewed", "cancelled"]

    resp = await client.get(f"{BASE}/clinic/{clinic.id}", headers=headers)
    assert resp.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_non_admin_cannot_create_subscription(client, clinic, receptionist):
    resp = await client.post(
        BASE, json={"clinic_id": str(clinic.id), "plan": "Basic"}, headers=auth_headers(receptionist)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_clinic_subscription_of_other_clinic_is_forbidden(client, db, other_clinic, receptionist):
    resp = await client.get(f"{BASE}/clinic/{other_clinic.id}", headers=auth_headers(receptionist))
    assert resp.status_code == 403
