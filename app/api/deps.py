from typing import Callable
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.redis import redis_client
from app.core.security import decode_access_token
from app.db.models import User, UserRole
from app.db.session import get_session

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def resolve_user_from_token(token: str, session: AsyncSession) -> User:
    """Decode the bearer token and check it is still registered in redis."""
    try:
        payload = decode_access_token(token)
        user_id = UUID(str(payload.get("sub")))
    except (PyJWTError, ValueError):
        raise credentials_exception

    if not await redis_client.get_token(token):
        raise credentials_exception

    user = await session.get(User, user_id)
    if user is None:
        raise credentials_exception
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session)
) -> User:
    return await resolve_user_from_token(token, session)


def require_role(*roles: UserRole) -> Callable:
    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return current_user
    return checker


get_current_practitioner = require_role(UserRole.PRACTITIONER)
get_current_patient = require_role(UserRole.PATIENT)
