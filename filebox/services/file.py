from dataclasses import dataclass
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import hashlib
import logging
import uuid
import os

from filebox.repositories.file import FileRepository
from filebox.repositories.share import ShareRepository
from filebox.core.config import settings
from filebox.core.storage import BlobStore
from filebox.schemas.file import FileUpdate
from filebox.models.file import File
from filebox.models.user import User
from filebox.utils.exceptions import (
    AuthorizationError,
    FileboxException,
    NotFoundError,
    ValidationError
)
from filebox.utils.time import utcnow

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_NAME_LENGTH = 255


@dataclass
class Download:
    """File metadata plus its bytes, ready to be streamed"""
    file: File
    content: bytes


def clean_filename(filename: Optional[str]) -> str:
    """Strip any client-side directory part and validate the display name"""
    name = os.path.basename((filename or "").replace("\\", "/")).strip()
    if not name:
        raise ValidationError("File name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"File name must be at most {MAX_NAME_LENGTH} characters")
    return name


class FileService:
    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.file_repo = FileRepository(db)
        self.share_repo = ShareRepository(db)
        self.blob_store = blob_store

    def _generate_object_name(self, filename: str, owner_id: Optional[uuid.UUID]) -> str:
        """Generate unique object name for blob storage"""
        file_extension = os.path.splitext(filename)[1].lower()
        unique_id = str(uuid.uuid4())
        if owner_id is None:
            return f"anonymous/{unique_id}{file_extension}"
        return f"users/{owner_id}/{unique_id}{file_extension}"

    async def store_upload(
        self,
        content: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        owner_id: Optional[uuid.UUID],
        max_size: int,
        is_public: bool = False
    ) -> File:
        """Write the blob and insert the file row without committing.

        If the row cannot be inserted the blob is deleted again. Callers that
        fail later in the same transaction must call ``discard_blob``.
        """
        name = clean_filename(filename)
        file_size = len(content)
        if file_size == 0:
            raise ValidationError("File is empty")
        if file_size > max_size:
            raise ValidationError(f"File is larger than {max_size // (1024 * 1024)} MB")

        object_name = self._generate_object_name(name, owner_id)
        await self.blob_store.put(content, object_name, content_type or DEFAULT_CONTENT_TYPE)

        try:
            return await self.file_repo.create(
                owner_id=owner_id,
                name=name,
                size=file_size,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                object_name=object_name,
                sha256=hashlib.sha256(content).hexdigest(),
                is_public=is_public
            )
        except Exception:
            await self.discard_blob(object_name)
            raise

    async def discard_blob(self, object_name: str) -> None:
        """Compensate a blob write whose metadata never made it to the database"""
        try:
            await self.blob_store.delete(object_name)
        except FileboxException as e:
            logger.error(f"Could not remove orphaned blob {object_name}: {e.message}")

    async def upload_file(
        self,
        content: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        user: User,
        is_public: bool = False
    ) -> File:
        """Upload a file owned by ``user``"""
        db_file = await self.store_upload(
            content, filename, content_type, user.id, settings.MAX_FILE_SIZE_BYTES, is_public
        )
        object_name = db_file.object_name
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            await self.discard_blob(object_name)
            raise
        logger.info(f"User {user.id} uploaded file {db_file.id} ({db_file.size} bytes)")
        return db_file

    async def get_owned_file(self, file_id: uuid.UUID, user: User) -> File:
        """Get a file the user owns, or any file for an admin"""
        db_file = await self.file_repo.get_by_id(file_id)
        if not db_file:
            raise NotFoundError("File not found")
        if db_file.owner_id != user.id and not user.is_admin:
            raise AuthorizationError("You do not have access to this file")
        return db_file

    async def list_user_files(self, user: User, page: int = 1, limit: int = 20) -> Tuple[List[File], int]:
        skip = (page - 1) * limit
        return await self.file_repo.get_user_files(user.id, skip, limit)

    async def update_file(self, file_id: uuid.UUID, user: User, file_data: FileUpdate) -> File:
        """Rename a file or change its visibility"""
        db_file = await self.get_owned_file(file_id, user)
        fields = {}
        if file_data.name is not None:
            fields["name"] = clean_filename(file_data.name)
        if file_data.is_public is not None:
            fields["is_public"] = file_data.is_public
        if fields:
            fields["updated_at"] = utcnow()
            await self.file_repo.update(db_file, **fields)
            await self.db.commit()
        return db_file

    async def delete_file(self, file_id: uuid.UUID, user: User) -> None:
        """Delete a file, retiring its shares in the same transaction"""
        db_file = await self.get_owned_file(file_id, user)
        await self.remove_file(db_file)
        logger.info(f"File {file_id} deleted by user {user.id}")

    async def remove_file(self, db_file: File) -> None:
        """Retire shares, drop the row, commit, then delete the blob"""
        object_name = db_file.object_name
        retired = await self.share_repo.retire_for_file(db_file.id, utcnow())
        await self.file_repo.delete(db_file)
        await self.db.commit()
        if retired:
            logger.info(f"Retired {retired} share(s) of file {db_file.id}")
        await self.discard_blob(object_name)

    async def read_content(self, db_file: File) -> bytes:
        return await self.blob_store.get(db_file.object_name)

    async def record_download(self, db_file: File) -> None:
        """Bump the download counter; analytics only"""
        await self.file_repo.increment_download_count(db_file.id)
        await self.db.commit()
