"""
Common API dependencies: resolving the bearer token into a Principal.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
import structlog

from reservation_engine.core.security import Principal, decode_access_token
from reservation_engine.db.session import get_sessionmaker
from reservation_engine.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Principal:
    """Authenticate the request and confirm the user still exists."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = uuid.UUID(payload["sub"])
    except (JWTError, KeyError, ValueError, TypeError) as exc:
        raise credentials_exception from exc

    # Short-lived session: released before the operation opens its own transaction.
    async with get_sessionmaker()() as db:
        result = await db.execute(select(User.id, User.role).where(User.id == user_id))
        user = result.one_or_none()
    if user is None:
        raise credentials_exception

    # The stored role wins over whatever the token claims.
    structlog.contextvars.bind_contextvars(user_id=str(user.id), role=user.role.value)
    return Principal(user_id=user.id, role=user.role)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
