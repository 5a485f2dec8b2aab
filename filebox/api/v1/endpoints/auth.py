from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from filebox.core.database import get_db
from filebox.core.rate_limit import auth_rate_limit
from filebox.api.deps import get_access_token, get_current_user
from filebox.schemas.auth import Token, LoginRequest, RefreshTokenRequest
from filebox.schemas.user import UserCreate, User
from filebox.services.auth import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=Token,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)]
)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new user and log them in"""
    auth_service = AuthService(db)
    return await auth_service.register(user_data)


@router.post("/login", response_model=Token, dependencies=[Depends(auth_rate_limit)])
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login with email and password"""
    auth_service = AuthService(db)
    return await auth_service.login(login_data.email, login_data.password)


@router.post("/refresh", response_model=Token)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token for a new session"""
    auth_service = AuthService(db)
    return await auth_service.refresh(refresh_data.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    access_token: str = Depends(get_access_token),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the current session"""
    auth_service = AuthService(db)
    await auth_service.logout(access_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=User)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return current_user
