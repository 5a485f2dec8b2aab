"""Share codes: minting, lookup, download accounting and retirement.

All state that decides whether a share may serve lives in the database.
Downloads are counted by a conditional UPDATE and code uniqueness is backed by
the UNIQUE constraint on ``shares.active_code``, so concurrent requests on any
number of workers agree without in-process locks.
"""
from datetime import datetime, timedelta
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from filebox.core.config import settings
from filebox.core.storage import BlobStore
from filebox.repositories.file import FileRepository
from filebox.repositories.share import ShareRepository
from filebox.schemas.share import ShareCreate, Share as ShareSchema
from filebox.models.file import File
from filebox.models.share import Share, ShareState
from filebox.models.user import User
from filebox.services.file import Download, FileService
from filebox.utils.codes import generate_share_code, is_valid_share_code
from filebox.utils.exceptions import (
    AuthorizationError,
    CodeConflictError,
    ExhaustedNamespaceError,
    GoneError,
    NotFoundError,
    ValidationError
)
from filebox.utils.time import utcnow

logger = logging.getLogger(__name__)


MAX_DOWNLOAD_LIMIT = 2**31 - 1


def _bounded(value: Optional[int], field: str, maximum: int) -> Optional[int]:
    if value is not None and not 0 < value <= maximum:
        raise ValidationError(f"{field} must be an integer between 1 and {maximum}")
    return value


def _expiry(now: datetime, expires_in: Optional[int], default_hours: int) -> Optional[datetime]:
    hours = expires_in if expires_in is not None else default_hours
    if not hours:
        return None
    try:
        return now + timedelta(hours=hours)
    except OverflowError:
        raise ValidationError("expires_in is too large")


class ShareService:
    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.share_repo = ShareRepository(db)
        self.file_repo = FileRepository(db)
        self.file_service = FileService(db, blob_store)
        self.blob_store = blob_store

    @staticmethod
    def to_schema(share: Share, file: Optional[File], now: Optional[datetime] = None) -> ShareSchema:
        return ShareSchema(
            id=share.id,
            file_id=share.file_id,
            file_name=file.name if file else None,
            file_size=file.size if file else None,
            content_type=file.content_type if file else None,
            code=share.code,
            status=share.state_at(now or utcnow()),
            expires_at=share.expires_at,
            download_limit=share.download_limit,
            download_count=share.download_count,
            created_at=share.created_at
        )

    async def _insert_share(
        self,
        file: File,
        share_data: ShareCreate,
        default_expire_hours: int
    ) -> Share:
        """Validate options and insert a share for ``file`` without committing"""
        now = utcnow()
        expires_in = _bounded(share_data.expires_in, "expires_in", settings.SHARE_MAX_EXPIRE_HOURS)
        download_limit = _bounded(share_data.download_limit, "download_limit", MAX_DOWNLOAD_LIMIT)
        expires_at = _expiry(now, expires_in, default_expire_hours)

        if share_data.code is not None:
            code = share_data.code
            if not is_valid_share_code(code):
                raise ValidationError("Share code must be 6 to 16 letters or digits")
            await self.share_repo.release_code(code, now)
            if await self.share_repo.code_in_use(code):
                raise CodeConflictError()
            share = await self._try_create(file, code, expires_at, download_limit, now)
            if share is None:
                raise CodeConflictError()
            return share

        for _ in range(settings.SHARE_CODE_MAX_ATTEMPTS):
            code = generate_share_code(settings.SHARE_CODE_LENGTH)
            await self.share_repo.release_code(code, now)
            if await self.share_repo.code_in_use(code):
                continue
            share = await self._try_create(file, code, expires_at, download_limit, now)
            if share is not None:
                return share
        logger.error(f"No free share code after {settings.SHARE_CODE_MAX_ATTEMPTS} attempts")
        raise ExhaustedNamespaceError()

    async def _try_create(
        self,
        file: File,
        code: str,
        expires_at: Optional[datetime],
        download_limit: Optional[int],
        now: datetime
    ) -> Optional[Share]:
        """Insert under a savepoint; None when another request took the code first"""
        try:
            async with self.db.begin_nested():
                return await self.share_repo.create(
                    file_id=file.id,
                    code=code,
                    expires_at=expires_at,
                    download_limit=download_limit,
                    created_at=now
                )
        except IntegrityError:
            logger.warning(f"Share code {code} was claimed concurrently")
            return None

    async def create_share(self, file_id: uuid.UUID, user: User, share_data: ShareCreate) -> Tuple[Share, File]:
        """Share an owned file under a requested or generated code"""
        file = await self.file_service.get_owned_file(file_id, user)
        share = await self._insert_share(file, share_data, settings.SHARE_DEFAULT_EXPIRE_HOURS)
        await self.db.commit()
        logger.info(f"User {user.id} shared file {file.id} as {share.code}")
        return share, file

    async def upload_anonymous(
        self,
        content: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        share_data: ShareCreate
    ) -> Tuple[Share, File]:
        """Store an ownerless file and its share in one transaction"""
        file = await self.file_service.store_upload(
            content, filename, content_type, None, settings.MAX_ANONYMOUS_FILE_SIZE_BYTES
        )
        object_name = file.object_name
        try:
            share = await self._insert_share(file, share_data, settings.ANONYMOUS_SHARE_DEFAULT_EXPIRE_HOURS)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            await self.file_service.discard_blob(object_name)
            raise
        logger.info(f"Anonymous upload {file.id} shared as {share.code}")
        return share, file

    async def resolve(self, code: str) -> Tuple[Share, File]:
        """Look up an active share by code"""
        share = await self.share_repo.get_by_code(code)
        if not share:
            raise NotFoundError("Share not found")
        if share.state_at(utcnow()) != ShareState.ACTIVE or share.file is None:
            raise GoneError()
        return share, share.file

    async def consume_download(self, code: str) -> Download:
        """Take one download slot of a share and return the file content.

        The slot is taken and committed before the blob is read; a failed read
        does not give the slot back.
        """
        share, file = await self.resolve(code)
        if not await self.share_repo.claim_download(share.id, utcnow()):
            # Expired or exhausted between the lookup and the claim
            await self.db.rollback()
            raise GoneError()
        await self.file_repo.increment_download_count(file.id)
        await self.db.commit()

        await self.db.refresh(share, ["download_count"])
        if share.state_at(utcnow()) == ShareState.EXHAUSTED:
            logger.info(f"Share {share.code} reached its download limit of {share.download_limit}")

        try:
            content = await self.file_service.read_content(file)
        except NotFoundError:
            logger.error(f"Blob {file.object_name} of shared file {file.id} is missing")
            raise GoneError("Shared file is no longer available")
        return Download(file=file, content=content)

    async def delete_share(self, share_id: uuid.UUID, user: User) -> None:
        """Retire a share; anonymous files go away with their last share"""
        share = await self.share_repo.get_by_id(share_id)
        if not share or share.deleted_at is not None or share.file is None:
            raise NotFoundError("Share not found")
        file = share.file
        if file.owner_id != user.id and not user.is_admin:
            raise AuthorizationError("You do not have access to this share")

        await self.share_repo.tombstone(share, utcnow())
        if file.is_anonymous and await self.share_repo.count_live_for_file(file.id) == 0:
            await self.file_service.remove_file(file)
            logger.info(f"Share {share.code} deleted along with anonymous file {file.id}")
            return
        await self.db.commit()
        logger.info(f"Share {share.code} deleted by user {user.id}")

    async def list_for_owner(self, user: User, page: int = 1, limit: int = 20) -> Tuple[List[Share], int]:
        skip = (page - 1) * limit
        return await self.share_repo.list_for_owner(user.id, skip, limit)
