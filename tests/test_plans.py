"""Tests for the plan catalog and feature/limit checks."""

from types import SimpleNamespace

import pytest

from clinic_api.core.errors import PlanNotFound
from clinic_api.services.plans import (
    DEFAULT_PLANS,
    get_plan,
    has_feature,
    has_reached_limit,
    list_plans,
    normalize_cycle,
    price_for_cycle,
    seed_default_plans,
)


@pytest.mark.asyncio
async def test_catalog_is_seeded_once(db):
    # conftest already seeded the catalog
    assert await seed_default_plans(db) == 0
    plans = await list_plans(db)
    assert [p.name for p in plans] == ["Free", "Basic", "Premium", "Enterprise"]
    assert [p.trial_days for p in plans] == [0, 14, 14, 30]


@pytest.mark.asyncio
async def test_get_plan(db):
    basic = await get_plan(db, "Basic")
    assert basic.features["max_doctors"] == 3
    assert "reports" in basic.features["allowed_modules"]


@pytest.mark.asyncio
async def test_unknown_plan(db):
    with pytest.raises(PlanNotFound):
        await get_plan(db, "Platinum")


def plan(name):
    entry = next(p for p in DEFAULT_PLANS if p["name"] == name)
    return SimpleNamespace(**entry)


def test_monthly_price_has_no_discount():
    assert price_for_cycle(plan("Basic"), "monthly") == {"amount": 1499, "currency": "INR", "discount": 0}


def test_discount_percentage_from_discounted_amount():
    price = price_for_cycle(plan("Basic"), "quarterly")
    assert price["amount"] == 3999
    assert price["discount"] == pytest.approx((3999 - 4497) / 3999 * 100)


def test_free_plan_is_always_zero():
    assert price_for_cycle(plan("Free"), "annual") == {"amount": 0, "currency": "INR", "discount": 0}


def test_unknown_cycle_is_monthly():
    assert normalize_cycle("fortnightly").value == "monthly"
    assert price_for_cycle(plan("Premium"), "fortnightly")["amount"] == 3999


def test_has_feature():
    features = plan("Premium").features
    assert has_feature(features, "analytics")
    assert not has_feature(features, "telehealth")
    assert not has_feature(None, "appointments")


@pytest.mark.parametrize(
    "resource,used,expected",
    [
        ("doctors", 2, False),
        ("doctors", 3, True),
        ("patients", 501, True),
        ("staff", 9, False),
        ("storage", 5 * 1024 - 1, False),
        ("storage", 5 * 1024, True),
        ("telepathy", 10**6, False),
    ],
)
def test_has_reached_limit(resource, used, expected):
    assert has_reached_limit({resource: used}, plan("Basic").features, resource) is expected
