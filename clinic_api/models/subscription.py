"""Clinic subscription model.

Price, feature limits and invoice references are snapshots taken when the
subscription is created or changed, so later catalog edits do not alter
what a clinic already bought.
"""

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.types import JSON
import uuid
import enum
from datetime import datetime
from clinic_api.core.database import Base


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    TRIAL = "trial"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING = "pending"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"
    MANUAL = "manual"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    clinic_id = Column(UUID(as_uuid=True), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    plan = Column(String, nullable=False, default="Free")
    status = Column(String, nullable=False, default=SubscriptionStatus.PENDING.value, index=True)

    start_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_date = Column(DateTime, nullable=False)
    next_billing_date = Column(DateTime, nullable=True)
    is_in_trial = Column(Boolean, nullable=False, default=False)
    trial_ends_at = Column(DateTime, nullable=True)
    auto_renew = Column(Boolean, nullable=False, default=True)

    payment_method = Column(String, nullable=False, default=PaymentMethod.MANUAL.value)
    billing_cycle = Column(String, nullable=False, default=BillingCycle.MONTHLY.value)
    price = Column(JSON, nullable=False)  # {"amount": 1499, "currency": "INR", "discount": 0}
    features = Column(JSON, nullable=False)
    usage = Column(JSON, nullable=False, default=dict)  # {"doctors": 0, "patients": 0, "staff": 0, "storage": 0}
    invoices = Column(JSON, nullable=False, default=list)  # [{"invoice_id", "amount", "status", "paid_at", "due_date"}]
    history = Column(JSON, nullable=False, default=list)  # [{"action", "date", "details"}]

    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
