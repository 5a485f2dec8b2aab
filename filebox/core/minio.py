from minio import Minio
from minio.error import S3Error
import io

import urllib3
from urllib3.exceptions import HTTPError

from filebox.core.config import settings
from filebox.core.storage import BlobStore
from filebox.utils.exceptions import NotFoundError, StoreUnavailableError

MISSING_OBJECT_CODES = {"NoSuchKey", "NoSuchObject"}


class MinioBlobStore(BlobStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Retries are handled by BlobStore so urllib3 must not retry on its own
        http_client = urllib3.PoolManager(
            timeout=urllib3.Timeout(connect=self.timeout, read=self.timeout),
            retries=urllib3.Retry(total=0),
        )
        self.client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ROOT_USER,
            secret_key=settings.MINIO_ROOT_PASSWORD,
            secure=settings.MINIO_SECURE,
            http_client=http_client
        )
        self.bucket_name = settings.MINIO_BUCKET_NAME

    async def ensure_bucket_exists(self):
        """Ensure the bucket exists, create if not"""
        try:
            if not await self._call(self.client.bucket_exists, self.bucket_name):
                await self._call(self.client.make_bucket, self.bucket_name)
        except (S3Error, HTTPError) as e:
            raise StoreUnavailableError(f"Error ensuring bucket exists: {e}")

    async def put(self, data: bytes, object_name: str, content_type: str) -> str:
        """Upload a file to MinIO"""
        try:
            await self._call(
                self.client.put_object,
                self.bucket_name,
                object_name,
                io.BytesIO(data),
                len(data),
                content_type=content_type
            )
            return object_name
        except (S3Error, HTTPError) as e:
            raise StoreUnavailableError(f"Error uploading file: {e}")

    async def _get(self, handle: str) -> bytes:
        """Download a file from MinIO"""
        try:
            return await self._call(self._read_object, handle)
        except S3Error as e:
            if e.code in MISSING_OBJECT_CODES:
                raise NotFoundError("File content not found")
            raise StoreUnavailableError(f"Error downloading file: {e}")
        except HTTPError as e:
            raise StoreUnavailableError(f"Error downloading file: {e}")

    async def _delete(self, handle: str) -> None:
        """Delete a file from MinIO"""
        try:
            await self._call(self.client.remove_object, self.bucket_name, handle)
        except (S3Error, HTTPError) as e:
            raise StoreUnavailableError(f"Error deleting file: {e}")

    async def ping(self) -> bool:
        try:
            await self.ensure_bucket_exists()
            return True
        except StoreUnavailableError:
            return False

    def _read_object(self, handle: str) -> bytes:
        response = self.client.get_object(self.bucket_name, handle)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()
