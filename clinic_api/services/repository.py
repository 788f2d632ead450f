"""Tenant-scoped query helpers.

``ClinicScope`` is bound to the acting user's clinic and injects the
``clinic_id`` filter into every query it builds, so call sites cannot forget it.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy import select, and_, Select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.dependencies import ActingUser
from clinic_api.core.errors import NotFound
from clinic_api.models.appointment import Appointment
from clinic_api.models.clinic import Clinic
from clinic_api.models.invoice import Invoice
from clinic_api.models.user import User


class ClinicScope:
    """Queries restricted to one clinic."""

    def __init__(self, db: AsyncSession, clinic_id: UUID):
        self.db = db
        self.clinic_id = clinic_id

    @classmethod
    def for_user(cls, db: AsyncSession, acting_user: ActingUser) -> "ClinicScope":
        return cls(db, acting_user.clinic_id)

    def appointments(self) -> Select:
        return select(Appointment).where(Appointment.clinic_id == self.clinic_id)

    def invoices(self) -> Select:
        return select(Invoice).where(Invoice.clinic_id == self.clinic_id)

    async def clinic(self) -> Optional[Clinic]:
        return await self.db.get(Clinic, self.clinic_id)

    async def get_appointment(self, appointment_id: UUID) -> Appointment:
        """Fetch an appointment of this clinic, reloading any stale identity-map copy."""
        result = await self.db.execute(
            self.appointments()
            .where(Appointment.id == appointment_id)
            .execution_options(populate_existing=True)
        )
        appointment = result.scalars().first()
        if appointment is None:
            raise NotFound("Appointment not found")
        return appointment

    async def get_user(self, user_id: UUID, role: Optional[str] = None) -> Optional[User]:
        conditions = [User.id == user_id, User.clinic_id == self.clinic_id]
        if role:
            conditions.append(User.role == role)
        result = await self.db.execute(select(User).where(and_(*conditions)))
        return result.scalar_one_or_none()
