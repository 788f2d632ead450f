"""Subscription plan catalog and feature/limit checks."""

import logging
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.database import async_session
from clinic_api.core.errors import PlanNotFound
from clinic_api.models.subscription import BillingCycle
from clinic_api.models.subscription_plan import SubscriptionPlan

logger = logging.getLogger(__name__)

FREE_PLAN = "Free"

BASE_MODULES = ["appointments", "billing"]
ALL_MODULES = [
    "appointments", "billing", "inventory", "reports",
    "chat", "analytics", "marketing", "telehealth",
]

# Usage key -> feature limit key
LIMIT_KEYS = {
    "doctors": "max_doctors",
    "patients": "max_patients",
    "staff": "max_staff",
    "storage": "max_storage",
}


def _price(amount, discounted_amount=None, currency="INR") -> dict:
    return {"amount": amount, "currency": currency, "discounted_amount": discounted_amount}


DEFAULT_PLANS = [
    {
        "name": "Free",
        "display_name": "Free Tier",
        "description": "Basic features for small clinics just getting started",
        "pricing": {
            "monthly": _price(0),
            "quarterly": _price(0),
            "annual": _price(0),
        },
        "features": {
            "max_doctors": 1,
            "max_patients": 100,
            "max_staff": 3,
            "max_storage": 1,
            "allowed_modules": BASE_MODULES,
        },
        "trial_days": 0,
        "is_popular": False,
        "sort_order": 1,
    },
    {
        "name": "Basic",
        "display_name": "Basic Plan",
        "description": "Essential features for growing clinics",
        "pricing": {
            "monthly": _price(1499),
            "quarterly": _price(3999, 4497),
            "annual": _price(14999, 17988),
        },
        "features": {
            "max_doctors": 3,
            "max_patients": 500,
            "max_staff": 10,
            "max_storage": 5,
            "allowed_modules": BASE_MODULES + ["inventory", "reports"],
        },
        "trial_days": 14,
        "is_popular": False,
        "sort_order": 2,
    },
    {
        "name": "Premium",
        "display_name": "Premium Plan",
        "description": "Advanced features for established clinics",
        "pricing": {
            "monthly": _price(3999),
            "quarterly": _price(10999, 11997),
            "annual": _price(39999, 47988),
        },
        "features": {
            "max_doctors": 10,
            "max_patients": 2000,
            "max_staff": 30,
            "max_storage": 20,
            "allowed_modules": BASE_MODULES + ["inventory", "reports", "analytics", "marketing"],
        },
        "trial_days": 14,
        "is_popular": True,
        "sort_order": 3,
    },
    {
        "name": "Enterprise",
        "display_name": "Enterprise Plan",
        "description": "Complete solution for large clinics and hospital networks",
        "pricing": {
            "monthly": _price(9999),
            "quarterly": _price(27999, 29997),
            "annual": _price(99999, 119988),
        },
        "features": {
            "max_doctors": 999999,
            "max_patients": 999999,
            "max_staff": 999999,
            "max_storage": 100,
            "allowed_modules": ALL_MODULES,
        },
        "trial_days": 30,
        "is_popular": False,
        "sort_order": 4,
    },
]


async def seed_default_plans(db: AsyncSession) -> int:
    """Insert the default catalog when the plans table is empty. Returns rows added."""
    count = (await db.execute(select(func.count(SubscriptionPlan.id)))).scalar_one()
    if count:
        return 0

    for entry in DEFAULT_PLANS:
        db.add(SubscriptionPlan(**entry))
    await db.commit()
    logger.info("Seeded %d default subscription plans", len(DEFAULT_PLANS))
    return len(DEFAULT_PLANS)


async def seed_plans_on_startup():
    """Seed the plan catalog with a fresh session (app lifespan)."""
    async with async_session() as db:
        try:
            await seed_default_plans(db)
        except Exception as e:
            logger.error(f"Failed to seed subscription plans: {e}")
            await db.rollback()


async def get_plan(db: AsyncSession, name: str) -> SubscriptionPlan:
    result = await db.execute(select(SubscriptionPlan).where(SubscriptionPlan.name == name))
    plan = result.scalar_one_or_none()
    if plan is None:
        raise PlanNotFound("Subscription plan not found")
    return plan


async def list_plans(db: AsyncSession) -> list[SubscriptionPlan]:
    result = await db.execute(
        select(SubscriptionPlan)
        .where(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.sort_order)
    )
    return list(result.scalars().all())


def normalize_cycle(cycle) -> BillingCycle:
    """Unknown billing cycles are billed monthly."""
    try:
        return BillingCycle(cycle)
    except ValueError:
        return BillingCycle.MONTHLY


def price_for_cycle(plan: SubscriptionPlan, cycle) -> dict:
    """Price snapshot ``{amount, currency, discount}`` for one billing cycle.

    ``discount`` is a percentage, ``(amount - discounted_amount) / amount * 100``
    when the catalog lists a discounted amount.
    """
    if plan.name == FREE_PLAN:
        return {"amount": 0, "currency": "INR", "discount": 0}

    entry = (plan.pricing or {}).get(normalize_cycle(cycle).value) or {}
    amount = entry.get("amount", 0)
    discounted = entry.get("discounted_amount")
    discount = (amount - discounted) / amount * 100 if discounted and amount else 0
    return {"amount": amount, "currency": entry.get("currency", "INR"), "discount": discount}


def has_feature(features: dict, module: str) -> bool:
    return module in (features or {}).get("allowed_modules", [])


def has_reached_limit(usage: dict, features: dict, resource: str) -> bool:
    """True when ``usage[resource]`` has hit the plan limit.

    Storage usage is tracked in MB; the plan limit is in GB.
    """
    key = LIMIT_KEYS.get(resource)
    if key is None:
        return False
    limit = (features or {}).get(key)
    if limit is None:
        return False
    used = (usage or {}).get(resource, 0) or 0
    if resource == "storage":
        return used >= limit * 1024
    return used >= limit
