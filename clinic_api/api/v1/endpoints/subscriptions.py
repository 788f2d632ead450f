"""Subscription plan catalog and clinic subscription endpoints."""

from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.database import get_db
from clinic_api.core.dependencies import ActingUser, get_acting_user, require_admin
from clinic_api.models.subscription import Subscription
from clinic_api.schemas.subscription import (
    InvoiceOut,
    PlanChange,
    PlanOut,
    SubscriptionCancel,
    SubscriptionCreate,
    SubscriptionOut,
    SubscriptionRenew,
)
from clinic_api.services import subscriptions as subscription_service
from clinic_api.services.plans import get_plan, list_plans

router = APIRouter()


def _out(subscription: Subscription) -> SubscriptionOut:
    out = SubscriptionOut.model_validate(subscription)
    return out.model_copy(update={"remaining_days": subscription_service.remaining_days(subscription)})


# ============================================================================
# PLAN CATALOG
# ============================================================================

@router.get("/plans", response_model=list[PlanOut])
async def get_plans(db: AsyncSession = Depends(get_db)):
    """Active plans ordered for display. Public."""
    return await list_plans(db)


@router.get("/plans/{name}", response_model=PlanOut)
async def get_plan_by_name(name: str, db: AsyncSession = Depends(get_db)):
    return await get_plan(db, name)


# ============================================================================
# CLINIC SUBSCRIPTIONS
# ============================================================================

@router.get("/clinic/{clinic_id}", response_model=SubscriptionOut)
async def get_clinic_subscription(
    clinic_id: UUID,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    """Current subscription; a clinic that never subscribed is put on Free."""
    subscription = await subscription_service.get_clinic_subscription(db, acting_user, clinic_id)
    return _out(subscription)


@router.get("/history/{clinic_id}", response_model=list[SubscriptionOut])
async def get_subscription_history(
    clinic_id: UUID,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    subscriptions = await subscription_service.get_subscription_history(db, acting_user, clinic_id)
    return [_out(s) for s in subscriptions]


@router.post("", response_model=SubscriptionOut, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    acting_user: ActingUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    subscription = await subscription_service.create_subscription(
        db, acting_user,
        clinic_id=data.clinic_id,
        plan_name=data.plan,
        billing_cycle=data.billing_cycle.value,
        payment_method=data.payment_method.value if data.payment_method else None,
        auto_renew=data.auto_renew,
    )
    return _out(subscription)


@router.post("/{subscription_id}/renew", response_model=SubscriptionOut)
async def renew_subscription(
    subscription_id: UUID,
    data: SubscriptionRenew = SubscriptionRenew(),
    acting_user: ActingUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    subscription = await subscription_service.renew_subscription(
        db, acting_user, subscription_id,
        payment_method=data.payment_method.value if data.payment_method else None,
    )
    return _out(subscription)


@router.post("/{subscription_id}/change-plan", response_model=SubscriptionOut)
async def change_plan(
    subscription_id: UUID,
    data: PlanChange,
    acting_user: ActingUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    subscription = await subscription_service.change_plan(
        db, acting_user, subscription_id,
        plan_name=data.plan,
        billing_cycle=data.billing_cycle.value if data.billing_cycle else None,
        payment_method=data.payment_method.value if data.payment_method else None,
    )
    return _out(subscription)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionOut)
async def cancel_subscription(
    subscription_id: UUID,
    data: SubscriptionCancel = SubscriptionCancel(),
    acting_user: ActingUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    subscription = await subscription_service.cancel_subscription(db, acting_user, subscription_id, data.reason)
    return _out(subscription)


@router.get("/{subscription_id}/invoices", response_model=list[InvoiceOut])
async def get_subscription_invoices(
    subscription_id: UUID,
    acting_user: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.get_subscription_invoices(db, acting_user, subscription_id)
