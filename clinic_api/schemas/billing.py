from datetime import datetime
from uuid import UUID
from pydantic import BaseModel
from typing import Optional


class BillingTotals(BaseModel):
    total: float
    paid: float
    outstanding: float


class BillingBucket(BaseModel):
    key: str
    count: int
    total: float
    paid: float


class BillingSummary(BaseModel):
    clinic_id: UUID
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    count: int
    totals: BillingTotals
    by_status: list[BillingBucket]
    by_month: list[BillingBucket]
    by_payment_method: list[BillingBucket]
