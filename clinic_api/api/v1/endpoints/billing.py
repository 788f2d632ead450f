"""Billing report endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.database import get_db
from clinic_api.core.dependencies import ActingUser, require_staff
from clinic_api.core.subscription_gate import require_feature
from clinic_api.schemas.billing import BillingSummary
from clinic_api.services.billing import billing_summary

router = APIRouter(dependencies=[Depends(require_feature("billing"))])


@router.get("/summary", response_model=BillingSummary)
async def get_billing_summary(
    clinic_id: Optional[UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    acting_user: ActingUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Invoice totals and breakdowns. Defaults to the caller's clinic."""
    return await billing_summary(
        db, acting_user, clinic_id or acting_user.clinic_id, start_date, end_date
    )
