"""FastAPI dependencies for authentication and tenant context."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_api.core.auth import decode_token
from clinic_api.core.database import get_db
from clinic_api.models.user import User

security = HTTPBearer()


@dataclass(frozen=True)
class ActingUser:
    """Who is performing an operation, and on behalf of which clinic.

    Every service call takes one of these explicitly; tenant filters are
    derived from ``clinic_id`` rather than from request parameters.
    """

    id: UUID
    role: str
    clinic_id: UUID
    name: str = ""
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "ActingUser":
        return cls(
            id=user.id,
            role=user.role,
            clinic_id=user.clinic_id,
            name=user.name,
            email=user.email,
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate JWT token, return current user."""
    payload = decode_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token"
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    return user


async def get_acting_user(current_user: User = Depends(get_current_user)) -> ActingUser:
    return ActingUser.from_user(current_user)


def require_role(*roles: str):
    """Dependency factory that checks if user has one of the required roles.

    Usage:
        require_staff = require_role("Admin", "Receptionist")

        @router.post("/staff-only")
        async def staff_route(user: ActingUser = Depends(require_staff)):
            ...
    """
    async def role_checker(acting_user: ActingUser = Depends(get_acting_user)) -> ActingUser:
        if acting_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(roles)}"
            )
        return acting_user

    return role_checker


require_admin = require_role("Admin")
require_staff = require_role("Admin", "Receptionist")
