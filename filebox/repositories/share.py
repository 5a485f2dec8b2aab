from datetime import datetime
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_, and_, not_, exists
from sqlalchemy.orm import selectinload, contains_eager
import uuid

from filebox.models.file import File
from filebox.models.share import Share


def _active_at(now: datetime):
    """SQL condition matching shares that can still serve downloads"""
    return and_(
        Share.deleted_at.is_(None),
        Share.file_id.isnot(None),
        or_(Share.expires_at.is_(None), Share.expires_at > now),
        or_(Share.download_limit.is_(None), Share.download_count < Share.download_limit)
    )


class ShareRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        file_id: uuid.UUID,
        code: str,
        expires_at: Optional[datetime],
        download_limit: Optional[int],
        created_at: datetime
    ) -> Share:
        """Create a share holding ``code``; raises IntegrityError if the code is taken"""
        db_share = Share(
            file_id=file_id,
            code=code,
            active_code=code,
            expires_at=expires_at,
            download_limit=download_limit,
            download_count=0,
            created_at=created_at,
            updated_at=created_at
        )
        self.db.add(db_share)
        await self.db.flush()
        return db_share

    async def get_by_id(self, share_id: uuid.UUID) -> Optional[Share]:
        """Get share by ID with its file"""
        query = select(Share).options(selectinload(Share.file)).filter(Share.id == share_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_code(self, code: str) -> Optional[Share]:
        """Get the share a code points at.

        The holder of the live code wins; otherwise the most recent share that
        ever used the code, so retired codes resolve as gone rather than unknown.
        """
        query = (
            select(Share)
            .options(selectinload(Share.file))
            .filter(Share.code == code)
            .order_by(Share.active_code.is_(None), Share.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def code_in_use(self, code: str) -> bool:
        query = select(Share.id).filter(Share.active_code == code).limit(1)
        result = await self.db.execute(query)
        return result.first() is not None

    async def release_code(self, code: str, now: datetime) -> bool:
        """Release ``code`` if the share holding it can no longer serve"""
        stmt = (
            update(Share)
            .where(Share.active_code == code, not_(_active_at(now)))
            .values(active_code=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def release_inactive_codes(self, now: datetime) -> int:
        """Release the codes of every share that can no longer serve"""
        stmt = (
            update(Share)
            .where(Share.active_code.isnot(None), not_(_active_at(now)))
            .values(active_code=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def claim_download(self, share_id: uuid.UUID, now: datetime) -> bool:
        """Take one download slot.

        Conditional increment evaluated by the store: succeeds only while the
        share is active, so the count can never pass the limit.
        """
        stmt = (
            update(Share)
            .where(Share.id == share_id, _active_at(now))
            .values(download_count=Share.download_count + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def tombstone(self, share: Share, now: datetime) -> Share:
        """Mark share deleted and release its code"""
        share.deleted_at = now
        share.active_code = None
        share.updated_at = now
        await self.db.flush()
        return share

    async def retire_for_file(self, file_id: uuid.UUID, now: datetime) -> int:
        """Tombstone and orphan every share of a file"""
        stmt = (
            update(Share)
            .where(Share.file_id == file_id)
            .values(
                deleted_at=func.coalesce(Share.deleted_at, now),
                file_id=None,
                active_code=None,
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def list_for_owner(self, user_id: uuid.UUID, skip: int = 0, limit: int = 100) -> Tuple[List[Share], int]:
        """Get a page of the shares on a user's files plus the total count"""
        condition = and_(File.owner_id == user_id, Share.deleted_at.is_(None))
        query = (
            select(Share)
            .join(Share.file)
            .options(contains_eager(Share.file))
            .filter(condition)
            .order_by(Share.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        total = await self.db.execute(
            select(func.count()).select_from(Share).join(Share.file).filter(condition)
        )
        return list(result.scalars().all()), total.scalar_one()

    async def count_live_for_file(self, file_id: uuid.UUID) -> int:
        """Shares of a file that are not deleted, whatever their state"""
        query = select(func.count()).select_from(Share).filter(
            Share.file_id == file_id, Share.deleted_at.is_(None)
        )
        result = await self.db.execute(query)
        return result.scalar_one()

    async def get_abandoned_anonymous_files(self, now: datetime, limit: int = 100) -> List[File]:
        """Anonymous files that no active share points at"""
        has_active_share = exists().where(Share.file_id == File.id, _active_at(now))
        query = (
            select(File)
            .filter(File.owner_id.is_(None), not_(has_active_share))
            .order_by(File.created_at)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(Share))
        return result.scalar_one()

    async def count_active(self, now: datetime) -> int:
        result = await self.db.execute(select(func.count()).select_from(Share).filter(_active_at(now)))
        return result.scalar_one()
