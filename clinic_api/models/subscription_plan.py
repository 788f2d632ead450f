from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.types import JSON
import uuid

from clinic_api.core.database import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String, nullable=False, unique=True)  # Free, Basic, Premium, Enterprise
    display_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # {"monthly": {"amount": 1499, "currency": "INR", "discounted_amount": None}, "quarterly": {...}, "annual": {...}}
    pricing = Column(JSON, nullable=False)
    # {"max_doctors": 3, "max_patients": 500, "max_staff": 10, "max_storage": 5, "allowed_modules": [...]}
    features = Column(JSON, nullable=False)
    trial_days = Column(Integer, nullable=False, default=14)
    is_popular = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
