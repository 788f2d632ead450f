"""Clinic subscription lifecycle: create, renew, change plan, cancel.

Each mutation writes the subscription, its invoice (non-Free plans) and the
clinic's subscription snapshot in one commit. The snapshot on ``Clinic`` is a
read model only; it always mirrors the live subscription when there is one.

No payment is captured here. Invoices are recorded as paid immediately, the
way a manual or offline settlement would be.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional
from uuid import UUID
from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.dependencies import ActingUser
from clinic_api.core.errors import DuplicateActiveSubscription, Forbidden, NotFound
from clinic_api.models.clinic import Clinic
from clinic_api.models.invoice import Invoice, InvoiceStatus
from clinic_api.models.subscription import (
    BillingCycle,
    PaymentMethod,
    Subscription,
    SubscriptionStatus,
)
from clinic_api.models.user import UserRole
from clinic_api.services.plans import FREE_PLAN, get_plan, normalize_cycle, price_for_cycle

logger = logging.getLogger(__name__)

LIVE_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIAL.value)

CYCLE_OFFSETS = {
    BillingCycle.MONTHLY: relativedelta(months=1),
    BillingCycle.QUARTERLY: relativedelta(months=3),
    BillingCycle.ANNUAL: relativedelta(years=1),
}

FREE_DEFAULT_TERM = relativedelta(years=100)


def cycle_end(start: datetime, cycle) -> datetime:
    return start + CYCLE_OFFSETS[normalize_cycle(cycle)]


def remaining_days(subscription: Subscription, now: Optional[datetime] = None) -> int:
    """Whole days left until ``end_date``; 0 once it has passed."""
    now = now or datetime.utcnow()
    if subscription.end_date is None or subscription.end_date <= now:
        return 0
    return (subscription.end_date - now).days


def check_clinic_access(acting_user: ActingUser, clinic_id: UUID) -> None:
    if acting_user.role != UserRole.ADMIN.value and acting_user.clinic_id != clinic_id:
        raise Forbidden("Not authorized to access this clinic's subscription")


async def _get_clinic(db: AsyncSession, clinic_id: UUID) -> Clinic:
    clinic = await db.get(Clinic, clinic_id)
    if clinic is None:
        raise NotFound("Clinic not found")
    return clinic


async def _get_subscription(db: AsyncSession, acting_user: ActingUser, subscription_id: UUID) -> Subscription:
    subscription = await db.get(Subscription, subscription_id)
    if subscription is None:
        raise NotFound("Subscription not found")
    check_clinic_access(acting_user, subscription.clinic_id)
    return subscription


async def find_live_subscription(db: AsyncSession, clinic_id: UUID) -> Optional[Subscription]:
    """The clinic's active or trial subscription, newest first."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.clinic_id == clinic_id, Subscription.status.in_(LIVE_STATUSES))
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


def _history(action: str, details: str) -> dict:
    return {"action": action, "date": datetime.utcnow().isoformat(), "details": details}


def _append(subscription: Subscription, attr: str, entry: dict) -> None:
    # New list so the JSON column is flagged dirty
    setattr(subscription, attr, [*(getattr(subscription, attr) or []), entry])


def sync_clinic_snapshot(clinic: Clinic, subscription: Subscription) -> None:
    """Rewrite the clinic's denormalized view of ``subscription``."""
    clinic.subscription_plan = subscription.plan
    clinic.features = subscription.features
    clinic.subscription = {
        "subscription_id": str(subscription.id),
        "status": subscription.status,
        "start_date": subscription.start_date.isoformat(),
        "end_date": subscription.end_date.isoformat(),
        "payment_method": subscription.payment_method,
        "last_payment": (clinic.subscription or {}).get("last_payment"),
    }
    clinic.updated_at = datetime.utcnow()


def _issue_invoice(
    db: AsyncSession,
    subscription: Subscription,
    acting_user: ActingUser,
    prefix: str,
    item_name: str,
    notes: str,
) -> Invoice:
    """Record a paid invoice for the current billing period and link it to the subscription."""
    now = datetime.utcnow()
    amount = subscription.price.get("amount", 0)
    discount_pct = subscription.price.get("discount", 0) or 0
    discount = amount * discount_pct / 100
    total = amount - discount
    period = f"{subscription.start_date:%Y-%m-%d} to {subscription.end_date:%Y-%m-%d}"

    invoice = Invoice(
        id=uuid.uuid4(),
        invoice_number=f"{prefix}-{now:%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6].upper()}",
        clinic_id=subscription.clinic_id,
        patient_id=None,
        subscription_id=subscription.id,
        items=[{
            "name": item_name,
            "description": f"Subscription period: {period}",
            "quantity": 1,
            "unit_price": amount,
            "discount": discount_pct,
            "tax": 0,
            "total": total,
        }],
        subtotal=amount,
        discount=discount,
        tax=0,
        total=total,
        paid_amount=total,
        status=InvoiceStatus.PAID.value,
        payment_method=subscription.payment_method,
        paid_at=now,
        due_date=now,
        notes=notes,
        created_by=acting_user.id,
        created_at=now,
    )
    db.add(invoice)

    _append(subscription, "invoices", {
        "invoice_id": str(invoice.id),
        "invoice_number": invoice.invoice_number,
        "amount": total,
        "status": InvoiceStatus.PAID.value,
        "paid_at": now.isoformat(),
        "due_date": now.isoformat(),
    })
    logger.info("Issued invoice %s (%.2f) for subscription %s", invoice.invoice_number, total, subscription.id)
    return invoice


def _mark_paid(clinic: Clinic) -> None:
    clinic.subscription = {**(clinic.subscription or {}), "last_payment": datetime.utcnow().isoformat()}


async def _sync_current_snapshot(db: AsyncSession, clinic: Clinic, subscription: Subscription) -> None:
    """Point the clinic snapshot at its live subscription, falling back to ``subscription``."""
    live = await find_live_subscription(db, clinic.id)
    sync_clinic_snapshot(clinic, live if live is not None else subscription)


# ============================================================================
# LIFECYCLE
# ============================================================================

async def create_subscription(
    db: AsyncSession,
    acting_user: ActingUser,
    clinic_id: UUID,
    plan_name: str,
    billing_cycle: str = BillingCycle.MONTHLY.value,
    payment_method: Optional[str] = None,
    auto_renew: bool = True,
) -> Subscription:
    """Start a subscription; plans with trial days begin in ``trial``."""
    check_clinic_access(acting_user, clinic_id)
    clinic = await _get_clinic(db, clinic_id)
    plan = await get_plan(db, plan_name)

    if await find_live_subscription(db, clinic_id) is not None:
        raise DuplicateActiveSubscription("Clinic already has an active subscription")

    cycle = normalize_cycle(billing_cycle)
    start = datetime.utcnow()
    end = cycle_end(start, cycle)
    in_trial = plan.name != FREE_PLAN and plan.trial_days > 0
    status = SubscriptionStatus.TRIAL if in_trial else SubscriptionStatus.ACTIVE

    subscription = Subscription(
        id=uuid.uuid4(),
        clinic_id=clinic_id,
        plan=plan.name,
        status=status.value,
        start_date=start,
        end_date=end,
        next_billing_date=end,
        is_in_trial=in_trial,
        trial_ends_at=start + relativedelta(days=plan.trial_days) if in_trial else None,
        auto_renew=auto_renew,
        payment_method=payment_method or PaymentMethod.MANUAL.value,
        billing_cycle=cycle.value,
        price=price_for_cycle(plan, cycle),
        features=plan.features,
        usage={"doctors": 0, "patients": 0, "staff": 0, "storage": 0},
        invoices=[],
        history=[_history("created", f"Subscription created with {plan.name} plan ({cycle.value})")],
    )
    db.add(subscription)
    await db.flush()

    sync_clinic_snapshot(clinic, subscription)
    if plan.name != FREE_PLAN:
        _issue_invoice(
            db, subscription, acting_user, "SUB",
            f"{plan.name} Plan Subscription ({cycle.value})",
            f"Subscription to {plan.name} Plan ({cycle.value})",
        )
        _mark_paid(clinic)

    await db.commit()
    logger.info(
        "Subscription %s created for clinic %s: plan=%s cycle=%s status=%s",
        subscription.id, clinic_id, plan.name, cycle.value, status.value,
    )
    return subscription


async def renew_subscription(
    db: AsyncSession,
    acting_user: ActingUser,
    subscription_id: UUID,
    payment_method: Optional[str] = None,
) -> Subscription:
    """Start a fresh period from now on the existing billing cycle; ends any trial."""
    subscription = await _get_subscription(db, acting_user, subscription_id)

    if subscription.status not in LIVE_STATUSES:
        live = await find_live_subscription(db, subscription.clinic_id)
        if live is not None and live.id != subscription.id:
            raise DuplicateActiveSubscription("Clinic already has an active subscription")

    cycle = normalize_cycle(subscription.billing_cycle)
    start = datetime.utcnow()
    end = cycle_end(start, cycle)

    subscription.status = SubscriptionStatus.ACTIVE.value
    subscription.start_date = start
    subscription.end_date = end
    subscription.next_billing_date = end
    subscription.is_in_trial = False
    subscription.trial_ends_at = None
    subscription.cancelled_at = None
    subscription.cancellation_reason = None
    if payment_method:
        subscription.payment_method = payment_method
    _append(subscription, "history", _history("renewed", f"Subscription renewed ({cycle.value})"))
    subscription.updated_at = datetime.utcnow()

    clinic = await _get_clinic(db, subscription.clinic_id)
    sync_clinic_snapshot(clinic, subscription)
    if subscription.plan != FREE_PLAN:
        _issue_invoice(
            db, subscription, acting_user, "SUB-RNW",
            f"{subscription.plan} Plan Renewal ({cycle.value})",
            f"Renewal of {subscription.plan} Plan ({cycle.value})",
        )
        _mark_paid(clinic)

    await db.commit()
    logger.info("Subscription %s renewed until %s", subscription.id, end)
    return subscription


async def change_plan(
    db: AsyncSession,
    acting_user: ActingUser,
    subscription_id: UUID,
    plan_name: str,
    billing_cycle: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Subscription:
    """Move to another plan (and optionally cycle). Always lands in ``active``."""
    subscription = await _get_subscription(db, acting_user, subscription_id)
    plan = await get_plan(db, plan_name)

    if subscription.status not in LIVE_STATUSES:
        live = await find_live_subscription(db, subscription.clinic_id)
        if live is not None and live.id != subscription.id:
            raise DuplicateActiveSubscription("Clinic already has an active subscription")

    cycle = normalize_cycle(billing_cycle or subscription.billing_cycle)
    start = datetime.utcnow()
    end = cycle_end(start, cycle)
    previous = subscription.plan

    subscription.plan = plan.name
    subscription.features = plan.features
    subscription.price = price_for_cycle(plan, cycle)
    subscription.billing_cycle = cycle.value
    subscription.status = SubscriptionStatus.ACTIVE.value
    subscription.start_date = start
    subscription.end_date = end
    subscription.next_billing_date = end
    subscription.is_in_trial = False
    subscription.trial_ends_at = None
    if payment_method:
        subscription.payment_method = payment_method
    _append(subscription, "history", _history(
        "plan_changed", f"Changed from {previous} to {plan.name} plan ({cycle.value})"
    ))
    subscription.updated_at = datetime.utcnow()

    clinic = await _get_clinic(db, subscription.clinic_id)
    sync_clinic_snapshot(clinic, subscription)
    if plan.name != FREE_PLAN:
        _issue_invoice(
            db, subscription, acting_user, "SUB-CHG",
            f"{plan.name} Plan Subscription ({cycle.value})",
            f"Changed from {previous} to {plan.name} Plan ({cycle.value})",
        )
        _mark_paid(clinic)

    await db.commit()
    logger.info("Subscription %s changed plan %s -> %s (%s)", subscription.id, previous, plan.name, cycle.value)
    return subscription


async def cancel_subscription(
    db: AsyncSession,
    acting_user: ActingUser,
    subscription_id: UUID,
    reason: Optional[str] = None,
) -> Subscription:
    """Mark cancelled. The paid-for ``end_date`` is left alone."""
    subscription = await _get_subscription(db, acting_user, subscription_id)

    now = datetime.utcnow()
    subscription.status = SubscriptionStatus.CANCELLED.value
    subscription.cancelled_at = now
    subscription.cancellation_reason = reason or "User cancelled"
    subscription.auto_renew = False
    _append(subscription, "history", _history("cancelled", subscription.cancellation_reason))
    subscription.updated_at = now

    clinic = await _get_clinic(db, subscription.clinic_id)
    await _sync_current_snapshot(db, clinic, subscription)

    await db.commit()
    logger.info("Subscription %s cancelled: %s", subscription.id, subscription.cancellation_reason)
    return subscription


# ============================================================================
# READS
# ============================================================================

async def create_default_subscription(db: AsyncSession, clinic: Clinic) -> Subscription:
    """Give a clinic without any subscription the Free plan."""
    plan = await get_plan(db, FREE_PLAN)
    start = datetime.utcnow()
    end = start + FREE_DEFAULT_TERM

    subscription = Subscription(
        id=uuid.uuid4(),
        clinic_id=clinic.id,
        plan=FREE_PLAN,
        status=SubscriptionStatus.ACTIVE.value,
        start_date=start,
        end_date=end,
        next_billing_date=end,
        is_in_trial=False,
        auto_renew=True,
        payment_method=PaymentMethod.MANUAL.value,
        billing_cycle=BillingCycle.ANNUAL.value,
        price={"amount": 0, "currency": "INR", "discount": 0},
        features=plan.features,
        usage={"doctors": 0, "patients": 0, "staff": 0, "storage": 0},
        invoices=[],
        history=[_history("created", "Default Free subscription created")],
    )
    db.add(subscription)
    await db.flush()
    sync_clinic_snapshot(clinic, subscription)
    await db.commit()
    logger.info("Created default Free subscription for clinic %s", clinic.id)
    return subscription


async def get_clinic_subscription(db: AsyncSession, acting_user: ActingUser, clinic_id: UUID) -> Subscription:
    """Live subscription, else the most recent one, else a new Free default."""
    check_clinic_access(acting_user, clinic_id)

    subscription = await find_live_subscription(db, clinic_id)
    if subscription is not None:
        return subscription

    result = await db.execute(
        select(Subscription)
        .where(Subscription.clinic_id == clinic_id)
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    subscription = result.scalars().first()
    if subscription is not None:
        return subscription

    clinic = await _get_clinic(db, clinic_id)
    return await create_default_subscription(db, clinic)


async def get_subscription_history(db: AsyncSession, acting_user: ActingUser, clinic_id: UUID) -> list[Subscription]:
    check_clinic_access(acting_user, clinic_id)
    result = await db.execute(
        select(Subscription)
        .where(Subscription.clinic_id == clinic_id)
        .order_by(Subscription.created_at.desc())
    )
    return list(result.scalars().all())


async def get_subscription_invoices(
    db: AsyncSession, acting_user: ActingUser, subscription_id: UUID
) -> list[Invoice]:
    subscription = await _get_subscription(db, acting_user, subscription_id)
    result = await db.execute(
        select(Invoice)
        .where(Invoice.subscription_id == subscription.id)
        .order_by(Invoice.created_at.desc())
    )
    return list(result.scalars().all())
