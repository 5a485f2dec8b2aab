from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
import uuid

from filebox.models.file import File


class FileRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        owner_id: Optional[uuid.UUID],
        name: str,
        size: int,
        content_type: str,
        object_name: str,
        sha256: str,
        is_public: bool = False
    ) -> File:
        """Create a new file record"""
        db_file = File(
            owner_id=owner_id,
            name=name,
            size=size,
            content_type=content_type,
            object_name=object_name,
            sha256=sha256,
            is_public=is_public
        )
        self.db.add(db_file)
        await self.db.flush()
        return db_file

    async def get_by_id(self, file_id: uuid.UUID) -> Optional[File]:
        """Get file by ID"""
        query = select(File).filter(File.id == file_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_user_files(self, user_id: uuid.UUID, skip: int = 0, limit: int = 100) -> Tuple[List[File], int]:
        """Get a page of a user's files plus the total count"""
        query = (
            select(File)
            .filter(File.owner_id == user_id)
            .order_by(File.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        total = await self.db.execute(
            select(func.count()).select_from(File).filter(File.owner_id == user_id)
        )
        return list(result.scalars().all()), total.scalar_one()

    async def update(self, file: File, **fields) -> File:
        """Update file metadata"""
        for field, value in fields.items():
            setattr(file, field, value)
        await self.db.flush()
        return file

    async def delete(self, file: File) -> None:
        """Delete file record"""
        await self.db.delete(file)
        await self.db.flush()

    async def increment_download_count(self, file_id: uuid.UUID) -> None:
        """Bump the analytics counter in the store, not in memory"""
        stmt = (
            update(File)
            .where(File.id == file_id)
            .values(download_count=File.download_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(File))
        return result.scalar_one()
