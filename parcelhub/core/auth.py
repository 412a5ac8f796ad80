"""
Caller identity - JWT bearer tokens

Login and registration live in the auth collaborator; this module only issues
tokens (for tooling and tests) and verifies the ones presented to the API.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as pyjwt
from pydantic import BaseModel

from parcelhub.core.config import settings
from parcelhub.core.logging import get_logger
from parcelhub.db.models.user import UserRole

logger = get_logger(__name__)


class TokenPayload(BaseModel):
    """Contents of the access token"""
    user_id: int
    role: UserRole
    exp: int  # Unix timestamp


class CallerIdentity(BaseModel):
    """Authenticated caller handed to the domain services"""
    user_id: int
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.ADMIN


def create_access_token(user_id: int, role: UserRole | str) -> str:
    """Sign an access token for ``user_id``"""
    if not settings.JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY is not set - cannot issue tokens")
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "user_id": user_id,
        "role": UserRole(role).value,
        "exp": int(expire.timestamp()),
    }
    return pyjwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify an access token - returns None when invalid or expired"""
    if not settings.JWT_SECRET_KEY:
        logger.error("JWT_SECRET_KEY is empty - tokens cannot be verified")
        return None
    try:
        payload = pyjwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return TokenPayload(**payload)
    except pyjwt.InvalidTokenError:
        logger.warning("JWT token invalid or expired")
        return None
    except (KeyError, ValueError) as e:
        logger.warning("JWT payload malformed", extra_data={"error": str(e)})
        return None
