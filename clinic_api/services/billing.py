"""Read-only invoice rollups."""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.dependencies import ActingUser
from clinic_api.models.invoice import Invoice, InvoiceStatus
from clinic_api.services.repository import ClinicScope
from clinic_api.services.subscriptions import check_clinic_access

logger = logging.getLogger(__name__)


def _bucket() -> dict:
    return {"count": 0, "total": 0.0, "paid": 0.0}


def _rounded(buckets: dict) -> list[dict]:
    return [
        {"key": key, "count": b["count"], "total": round(b["total"], 2), "paid": round(b["paid"], 2)}
        for key, b in sorted(buckets.items())
    ]


async def billing_summary(
    db: AsyncSession,
    acting_user: ActingUser,
    clinic_id: UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """Totals and distributions over a clinic's invoices created in [start, end].

    Cancelled invoices are counted in ``by_status`` but left out of the money
    totals. ``outstanding`` is what has been billed and not yet paid.
    """
    check_clinic_access(acting_user, clinic_id)

    query = ClinicScope(db, clinic_id).invoices()
    if start:
        query = query.where(Invoice.created_at >= start)
    if end:
        query = query.where(Invoice.created_at <= end)
    result = await db.execute(query.order_by(Invoice.created_at))
    invoices = result.scalars().all()

    total = paid = 0.0
    by_status = defaultdict(_bucket)
    by_month = defaultdict(_bucket)
    by_method = defaultdict(_bucket)

    for invoice in invoices:
        amount = invoice.total or 0
        settled = invoice.paid_amount or 0
        by_status[invoice.status]["count"] += 1
        by_status[invoice.status]["total"] += amount
        by_status[invoice.status]["paid"] += settled
        if invoice.status == InvoiceStatus.CANCELLED.value:
            continue

        total += amount
        paid += settled
        for buckets, key in (
            (by_month, f"{invoice.created_at:%Y-%m}"),
            (by_method, invoice.payment_method or "unknown"),
        ):
            buckets[key]["count"] += 1
            buckets[key]["total"] += amount
            buckets[key]["paid"] += settled

    logger.debug("Billing summary for clinic %s: %d invoices", clinic_id, len(invoices))
    return {
        "clinic_id": clinic_id,
        "start": start,
        "end": end,
        "count": len(invoices),
        "totals": {
            "total": round(total, 2),
            "paid": round(paid, 2),
            "outstanding": round(total - paid, 2),
        },
        "by_status": _rounded(by_status),
        "by_month": _rounded(by_month),
        "by_payment_method": _rounded(by_method),
    }
