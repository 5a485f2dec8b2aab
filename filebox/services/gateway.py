from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from filebox.core.storage import BlobStore
from filebox.services.auth import AuthService
from filebox.services.file import Download, FileService
from filebox.services.share import ShareService


class AccessGateway:
    """Every read of file content goes through here"""

    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.auth_service = AuthService(db)
        self.file_service = FileService(db, blob_store)
        self.share_service = ShareService(db, blob_store)

    async def download_as_owner(self, access_token: str, file_id: uuid.UUID) -> Download:
        """Owner path: a valid session for the owner or an admin"""
        user = await self.auth_service.get_current_user(access_token)
        file = await self.file_service.get_owned_file(file_id, user)
        content = await self.file_service.read_content(file)
        await self.file_service.record_download(file)
        return Download(file=file, content=content)

    async def download_by_code(self, code: str) -> Download:
        """Share path: anyone holding an active code"""
        return await self.share_service.consume_download(code)
