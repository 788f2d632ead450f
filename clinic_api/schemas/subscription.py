"""Pydantic schemas for plans, subscriptions and invoices."""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel
from typing import Any, Optional
from clinic_api.models.subscription import BillingCycle, PaymentMethod


class PlanOut(BaseModel):
    id: UUID
    name: str
    display_name: str
    description: Optional[str] = None
    pricing: dict[str, Any]
    features: dict[str, Any]
    trial_days: int
    is_popular: bool
    sort_order: int

    class Config:
        from_attributes = True


class SubscriptionCreate(BaseModel):
    clinic_id: UUID
    plan: str
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    payment_method: Optional[PaymentMethod] = None
    auto_renew: bool = True


class SubscriptionRenew(BaseModel):
    payment_method: Optional[PaymentMethod] = None


class PlanChange(BaseModel):
    plan: str
    billing_cycle: Optional[BillingCycle] = None
    payment_method: Optional[PaymentMethod] = None


class SubscriptionCancel(BaseModel):
    reason: Optional[str] = None


class SubscriptionOut(BaseModel):
    """Schema for returning a subscription with its snapshots."""
    id: UUID
    clinic_id: UUID
    plan: str
    status: str
    start_date: datetime
    end_date: datetime
    next_billing_date: Optional[datetime] = None
    is_in_trial: bool
    trial_ends_at: Optional[datetime] = None
    auto_renew: bool
    payment_method: str
    billing_cycle: str
    price: dict[str, Any]
    features: dict[str, Any]
    usage: dict[str, Any] = {}
    invoices: list[dict[str, Any]] = []
    history: list[dict[str, Any]] = []
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    remaining_days: Optional[int] = None

    class Config:
        from_attributes = True


class InvoiceOut(BaseModel):
    id: UUID
    invoice_number: str
    clinic_id: UUID
    subscription_id: Optional[UUID] = None
    items: list[dict[str, Any]]
    subtotal: float
    discount: float
    tax: float
    total: float
    paid_amount: float
    status: str
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
