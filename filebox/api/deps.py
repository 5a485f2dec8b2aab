from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from filebox.core.database import get_db
from filebox.models.user import User
from filebox.services.auth import AuthService
from filebox.utils.exceptions import AuthenticationError, AuthorizationError

# auto_error is off so a missing header renders through our own error body
bearer_scheme = HTTPBearer(auto_error=False)


async def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    """Extract the bearer token from the Authorization header"""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return credentials.credentials


async def get_current_user(
    access_token: str = Depends(get_access_token),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    return await AuthService(db).get_current_user(access_token)


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise AuthorizationError("Admin privileges required")
    return current_user
