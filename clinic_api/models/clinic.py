"""Clinic (tenant) model.

Each clinic carries its scheduling configuration and a denormalized snapshot
of its current subscription (plan name, feature limits, status/dates). The
snapshot is rewritten by the subscription service on every subscription
mutation and is never edited on its own.
"""

from sqlalchemy import Column, String, DateTime, Boolean, Integer
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.types import JSON
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from clinic_api.core.database import Base


class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")  # active, suspended

    # Availability/Scheduling fields
    working_days = Column(JSON, nullable=True)  # ["mon", "tue", "wed", "thu", "fri"]
    working_hours_start = Column(String, nullable=True)  # "09:00"
    working_hours_end = Column(String, nullable=True)  # "17:00"
    appointment_duration_minutes = Column(Integer, nullable=True, default=30)
    break_start = Column(String, nullable=True)  # "13:00"
    break_end = Column(String, nullable=True)  # "14:00"
    notifications_enabled = Column(Boolean, default=True)

    # Subscription snapshot (read model, see services.subscriptions)
    subscription_plan = Column(String, nullable=True)
    features = Column(JSON, nullable=True)  # {"max_doctors": 1, ..., "allowed_modules": [...]}
    subscription = Column(JSON, nullable=True)  # {"status": ..., "start_date": ..., "end_date": ...}

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    users = relationship("User", back_populates="clinic")
