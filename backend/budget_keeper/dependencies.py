"""FastAPI dependencies for authentication."""

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_keeper.core.database import get_db
from budget_keeper.core.security import decode_token
from budget_keeper.models.user import User

# HTTP Bearer token scheme; auto_error=False so a missing header becomes a 401, not a 403
security = HTTPBearer(auto_error=False)

_credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from a JWT access token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or names no user;
            403 if the user is inactive
    """
    if credentials is None:
        raise _credentials_exception

    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise _credentials_exception
        user_id = UUID(str(payload.get("sub")))
    except (JWTError, ValueError):
        raise _credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return user
