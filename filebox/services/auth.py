from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from filebox.core.security import (
    access_token_expiry,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    hash_refresh_token,
    new_token_id,
    refresh_token_expiry,
    validate_email,
    validate_password_policy,
    verify_password
)
from filebox.repositories.session import SessionRepository
from filebox.repositories.user import UserRepository
from filebox.schemas.user import UserCreate
from filebox.schemas.auth import Token
from filebox.models.user import User
from filebox.utils.exceptions import AuthenticationError, ConflictError, ValidationError
from filebox.utils.time import utcnow

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Incorrect email or password"


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.session_repo = SessionRepository(db)

    async def create_user(
        self,
        email: str,
        password: str,
        username: Optional[str] = None,
        is_admin: bool = False
    ) -> User:
        """Validate and insert a user; the caller commits"""
        email = email.strip().lower()
        validate_email(email)
        validate_password_policy(password)
        if username is not None:
            username = username.strip()
            if not username or len(username) > 50:
                raise ValidationError("Username must be between 1 and 50 characters")

        # Check if user already exists
        if await self.user_repo.get_by_email(email):
            raise ConflictError("User with this email already exists")
        if username and await self.user_repo.get_by_username(username):
            raise ConflictError("User with this username already exists")

        try:
            return await self.user_repo.create(
                email=email,
                hashed_password=get_password_hash(password),
                username=username,
                is_admin=is_admin
            )
        except IntegrityError:
            # Lost a race with a concurrent registration
            await self.db.rollback()
            raise ConflictError("User with this email or username already exists")

    async def register(self, user_data: UserCreate) -> Token:
        """Register a new user and open their first session"""
        user = await self.create_user(user_data.email, user_data.password, user_data.username)
        token = await self._issue_session(user)
        await self.db.commit()
        logger.info(f"Registered user {user.id}")
        return token

    async def authenticate(self, email: str, password: str) -> User:
        """Check email and password; the error never says which one was wrong"""
        user = await self.user_repo.get_by_email(email.strip().lower())
        if not user or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationError(INVALID_CREDENTIALS)
        return user

    async def login(self, email: str, password: str) -> Token:
        user = await self.authenticate(email, password)
        token = await self._issue_session(user)
        await self.db.commit()
        return token

    async def validate(self, access_token: str) -> uuid.UUID:
        """Return the user id behind a live access token"""
        payload = decode_token(access_token)
        if not payload or payload.get("type") != "access":
            raise AuthenticationError()

        session = await self.session_repo.get_by_access_jti(payload["jti"])
        if (
            not session
            or session.revoked_at is not None
            or session.access_expires_at <= utcnow()
            or str(session.user_id) != payload["sub"]
        ):
            raise AuthenticationError()
        return session.user_id

    async def get_current_user(self, access_token: str) -> User:
        user_id = await self.validate(access_token)
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise AuthenticationError()
        return user

    async def refresh(self, refresh_token: str) -> Token:
        """Rotate a session: the consumed refresh token can never be used again"""
        token_hash = hash_refresh_token(refresh_token)
        if not await self.session_repo.consume_refresh(token_hash, utcnow()):
            await self.db.rollback()
            raise AuthenticationError("Invalid refresh token")

        session = await self.session_repo.get_by_refresh_hash(token_hash)
        user = await self.user_repo.get_by_id(session.user_id)
        if not user:
            await self.db.rollback()
            raise AuthenticationError("Invalid refresh token")

        token = await self._issue_session(user)
        await self.db.commit()
        return token

    async def logout(self, access_token: str) -> None:
        """Revoke the session behind an access token. Safe to repeat."""
        payload = decode_token(access_token, verify_exp=False)
        if not payload or payload.get("type") != "access":
            raise AuthenticationError()

        session = await self.session_repo.get_by_access_jti(payload["jti"])
        if not session:
            raise AuthenticationError()
        if await self.session_repo.revoke(session.id, utcnow()):
            logger.info(f"Session {session.id} revoked")
        await self.db.commit()

    async def ensure_admin(self, email: str, password: str, username: Optional[str] = None) -> Optional[User]:
        """Create the initial admin unless one already exists"""
        if await self.user_repo.has_admin():
            return None
        user = await self.create_user(email, password, username, is_admin=True)
        await self.db.commit()
        logger.info(f"Created admin user {user.email}")
        return user

    async def _issue_session(self, user: User) -> Token:
        now = utcnow()
        jti = new_token_id()
        refresh_token = create_refresh_token()
        session = await self.session_repo.create(
            user_id=user.id,
            access_jti=jti,
            refresh_token_hash=hash_refresh_token(refresh_token),
            access_expires_at=access_token_expiry(now),
            refresh_expires_at=refresh_token_expiry(now),
            created_at=now
        )
        return Token(
            access_token=create_access_token(user.id, jti, now, session.access_expires_at),
            refresh_token=refresh_token,
            expires_at=session.access_expires_at,
            refresh_expires_at=session.refresh_expires_at,
            user_id=user.id,
            username=user.username,
            email=user.email,
            is_admin=user.is_admin
        )
