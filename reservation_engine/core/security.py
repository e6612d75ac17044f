"""
Principal handling and JWT helpers.

Credentials are checked by the identity provider; tokens it issues carry
the user id in ``sub`` and the role in ``role``. The core only consumes the
resulting Principal and checks capabilities once per operation.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import jwt

from reservation_engine.core.config import get_settings
from reservation_engine.core.errors import NotAuthorized
from reservation_engine.models.user import UserRole


@dataclass(frozen=True)
class Principal:
    """Authenticated caller of a core operation."""

    user_id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def require_role(principal: Principal, *roles: UserRole) -> None:
    """Capability check performed at the entry of each core operation."""
    if principal.role not in roles:
        allowed = ", ".join(role.value for role in roles)
        raise NotAuthorized(f"This action requires role: {allowed}")


def create_access_token(
    subject: str,
    role: UserRole,
    expires_delta: Optional[timedelta] = None,
) -> str:
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims: dict[str, Any] = {
        "sub": subject,
        "role": role.value,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a JWT token, raising JWTError on failure."""
    settings = get_settings()
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
