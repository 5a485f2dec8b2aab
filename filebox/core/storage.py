"""Blob store contract and the local filesystem backend.

A blob store only moves bytes: ``put`` stores content under a handle,
``get`` returns it and ``delete`` removes it. Metadata lives in the
database. Every backend call runs in a worker thread under
``BLOB_TIMEOUT_SECONDS``; timeouts and transport failures surface as
``StoreUnavailableError`` so callers never confuse them with a missing blob.
"""
from pathlib import Path
from typing import Awaitable, Callable, TypeVar
import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from filebox.core.config import settings
from filebox.utils.exceptions import NotFoundError, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BlobStore:
    """Base class for blob storage backends"""

    def __init__(
        self,
        timeout: float = None,
        retry_attempts: int = None,
        retry_backoff: float = None
    ):
        self.timeout = timeout if timeout is not None else settings.BLOB_TIMEOUT_SECONDS
        self.retry_attempts = retry_attempts if retry_attempts is not None else settings.BLOB_RETRY_ATTEMPTS
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.BLOB_RETRY_BACKOFF_SECONDS

    async def put(self, data: bytes, object_name: str, content_type: str) -> str:
        """Store bytes and return the handle. Never retried."""
        raise NotImplementedError

    async def get(self, handle: str) -> bytes:
        """Read bytes, retrying transient failures"""
        return await self._with_retry(lambda: self._get(handle), f"get {handle}")

    async def delete(self, handle: str) -> None:
        """Delete bytes, retrying transient failures. Deleting a missing blob is a no-op."""
        await self._with_retry(lambda: self._delete(handle), f"delete {handle}")

    async def ping(self) -> bool:
        raise NotImplementedError

    async def _get(self, handle: str) -> bytes:
        raise NotImplementedError

    async def _delete(self, handle: str) -> None:
        raise NotImplementedError

    async def _call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Run a blocking backend call in the thread pool with a timeout"""
        try:
            return await asyncio.wait_for(
                run_in_threadpool(func, *args, **kwargs),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise StoreUnavailableError("Blob store timed out")

    async def _with_retry(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        attempts = max(1, self.retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await operation()
            except StoreUnavailableError as e:
                logger.warning(
                    f"Blob store {description} failed (attempt {attempt}/{attempts}): {e.message}"
                )
                if attempt == attempts:
                    raise
                await asyncio.sleep(self.retry_backoff * attempt)


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory on the local filesystem"""

    def __init__(self, base_path: str = None, **kwargs):
        super().__init__(**kwargs)
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, handle: str) -> Path:
        path = (self.base_path / handle).resolve()
        if self.base_path not in path.parents:
            raise NotFoundError("File content not found")
        return path

    async def put(self, data: bytes, object_name: str, content_type: str) -> str:
        path = self._path(object_name)
        try:
            await self._call(self._write, path, data)
        except OSError as e:
            raise StoreUnavailableError(f"Error storing file: {e}")
        return object_name

    async def _get(self, handle: str) -> bytes:
        path = self._path(handle)
        try:
            return await self._call(path.read_bytes)
        except FileNotFoundError:
            raise NotFoundError("File content not found")
        except OSError as e:
            raise StoreUnavailableError(f"Error reading file: {e}")

    async def _delete(self, handle: str) -> None:
        path = self._path(handle)
        try:
            await self._call(path.unlink, missing_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Error deleting file: {e}")

    async def ping(self) -> bool:
        return self.base_path.is_dir()

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".part")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)


_blob_store: BlobStore = None


def create_blob_store() -> BlobStore:
    """Build the blob store selected by STORAGE_BACKEND"""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "local":
        return LocalBlobStore()
    if backend == "minio":
        from filebox.core.minio import MinioBlobStore
        return MinioBlobStore()
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


async def get_blob_store() -> BlobStore:
    """Dependency to get the configured blob store"""
    global _blob_store
    if _blob_store is None:
        _blob_store = create_blob_store()
    return _blob_store
