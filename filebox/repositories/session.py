from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
import uuid

from filebox.models.session import AuthSession


class SessionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: uuid.UUID,
        access_jti: str,
        refresh_token_hash: str,
        access_expires_at: datetime,
        refresh_expires_at: datetime,
        created_at: datetime
    ) -> AuthSession:
        """Create a new session record"""
        db_session = AuthSession(
            user_id=user_id,
            access_jti=access_jti,
            refresh_token_hash=refresh_token_hash,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
            created_at=created_at
        )
        self.db.add(db_session)
        await self.db.flush()
        return db_session

    async def get_by_access_jti(self, access_jti: str) -> Optional[AuthSession]:
        """Get session by the jti of its access token"""
        query = select(AuthSession).filter(AuthSession.access_jti == access_jti)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_refresh_hash(self, refresh_token_hash: str) -> Optional[AuthSession]:
        query = select(AuthSession).filter(AuthSession.refresh_token_hash == refresh_token_hash)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def consume_refresh(self, refresh_token_hash: str, now: datetime) -> bool:
        """Revoke a live session by its refresh token hash.

        Single conditional UPDATE: of several concurrent callers presenting the
        same refresh token, exactly one sees a changed row.
        """
        stmt = (
            update(AuthSession)
            .where(
                AuthSession.refresh_token_hash == refresh_token_hash,
                AuthSession.revoked_at.is_(None),
                AuthSession.refresh_expires_at > now
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def revoke(self, session_id: uuid.UUID, now: datetime) -> bool:
        """Revoke a session; returns False if it was already revoked"""
        stmt = (
            update(AuthSession)
            .where(AuthSession.id == session_id, AuthSession.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1
