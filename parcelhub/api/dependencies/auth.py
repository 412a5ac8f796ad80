"""
FastAPI dependencies for caller authentication

Usage:
    @router.post("/shipments")
    async def create_shipment(
        caller: CallerIdentity = Depends(get_current_caller),
        db: AsyncSession = Depends(get_db),
    ):
        ...
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.auth import verify_token, CallerIdentity
from parcelhub.core.exceptions import UnauthorizedError, ForbiddenError
from parcelhub.core.logging import get_logger
from parcelhub.db.database import get_db
from parcelhub.db.models.user import User

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> CallerIdentity:
    """
    Verify the bearer token and confirm the account still exists and is active.

    The role comes from the database, not the token, so a role change takes
    effect on the next request.
    """
    if credentials is None:
        raise UnauthorizedError()

    token_data = verify_token(credentials.credentials)
    if token_data is None:
        raise UnauthorizedError("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        logger.warning(
            "Token for missing or inactive user",
            extra_data={
                "user_id": token_data.user_id,
                "user_found": user is not None,
            },
        )
        raise UnauthorizedError("Invalid or expired token")

    return CallerIdentity(user_id=user.id, role=user.role)


async def require_staff(
    caller: CallerIdentity = Depends(get_current_caller),
) -> CallerIdentity:
    """Caller must be an admin"""
    if not caller.is_staff:
        logger.warning("Staff access denied", extra_data={"user_id": caller.user_id})
        raise ForbiddenError()
    return caller
