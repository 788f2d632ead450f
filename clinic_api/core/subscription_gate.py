"""Subscription feature gate and resource limits.

``require_feature`` guards routers. ``check_resource_limit`` is a library-level
check for whatever code adds doctors, patients, staff or files to a clinic;
user management is not part of this API, so nothing here calls it yet.
"""

import logging
from datetime import datetime
from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.database import get_db
from clinic_api.core.dependencies import ActingUser, get_acting_user
from clinic_api.core.errors import Forbidden, NotFound
from clinic_api.models.clinic import Clinic
from clinic_api.models.subscription import SubscriptionStatus
from clinic_api.models.user import User, UserRole
from clinic_api.services.plans import has_feature, has_reached_limit
from clinic_api.services.subscriptions import create_default_subscription, find_live_subscription

logger = logging.getLogger(__name__)

# Trial clinics get the same access as paying ones
USABLE_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIAL.value)

RESOURCE_ROLES = {
    "doctors": (UserRole.DOCTOR.value,),
    "patients": (UserRole.PATIENT.value,),
    "staff": (UserRole.ADMIN.value, UserRole.RECEPTIONIST.value),
}


async def ensure_subscription_active(db: AsyncSession, clinic: Clinic, module: str | None = None) -> None:
    """Raise Forbidden unless ``clinic`` may use ``module`` right now.

    A clinic that has never subscribed is put on the Free plan first. A lapsed
    subscription is marked expired and the clinic suspended.
    """
    if clinic.status != "active":
        raise Forbidden("Clinic account is not active")

    if not clinic.subscription:
        await create_default_subscription(db, clinic)

    snapshot = clinic.subscription or {}
    if snapshot.get("status") not in USABLE_STATUSES:
        raise Forbidden("Clinic subscription is not active")

    end_date = snapshot.get("end_date")
    if end_date and datetime.fromisoformat(end_date) < datetime.utcnow():
        clinic.subscription = {**snapshot, "status": SubscriptionStatus.EXPIRED.value}
        clinic.status = "suspended"
        live = await find_live_subscription(db, clinic.id)
        if live is not None:
            live.status = SubscriptionStatus.EXPIRED.value
        await db.commit()
        logger.warning("Subscription for clinic %s expired on %s; clinic suspended", clinic.id, end_date)
        raise Forbidden("Clinic subscription has expired")

    if module and not has_feature(clinic.features, module):
        raise Forbidden(
            f"This feature is not available in your current subscription plan ({clinic.subscription_plan})"
        )


def require_feature(module: str):
    """Dependency factory gating a router on a plan module.

    Usage:
        router = APIRouter(dependencies=[Depends(require_feature("billing"))])
    """
    async def feature_checker(
        acting_user: ActingUser = Depends(get_acting_user),
        db: AsyncSession = Depends(get_db),
    ) -> Clinic:
        clinic = await db.get(Clinic, acting_user.clinic_id)
        if clinic is None:
            raise NotFound("Clinic not found")
        await ensure_subscription_active(db, clinic, module)
        return clinic

    return feature_checker


async def current_usage(db: AsyncSession, clinic: Clinic) -> dict:
    """Live user counts per resource, plus storage (MB) tracked on the subscription."""
    result = await db.execute(
        select(User.role, func.count(User.id))
        .where(User.clinic_id == clinic.id, User.is_active.is_(True))
        .group_by(User.role)
    )
    by_role = dict(result.all())
    usage = {
        resource: sum(by_role.get(role, 0) for role in roles)
        for resource, roles in RESOURCE_ROLES.items()
    }
    live = await find_live_subscription(db, clinic.id)
    usage["storage"] = ((live.usage or {}).get("storage", 0) if live else 0)
    return usage


async def check_resource_limit(db: AsyncSession, clinic: Clinic, resource: str) -> None:
    """Raise Forbidden if adding one more ``resource`` would exceed the plan limit."""
    usage = await current_usage(db, clinic)
    if has_reached_limit(usage, clinic.features, resource):
        logger.warning(
            "Clinic %s hit %s limit on plan %s: %s", clinic.id, resource, clinic.subscription_plan, usage
        )
        raise Forbidden(
            f"You have reached the maximum limit for {resource} in your current subscription plan"
        )
