import asyncio

import pytest

from filebox.core.storage import LocalBlobStore
from filebox.utils.exceptions import NotFoundError, StoreUnavailableError


async def test_put_get_delete(blob_store):
    handle = await blob_store.put(b"hello", "users/1/a.txt", "text/plain")
    assert await blob_store.get(handle) == b"hello"

    await blob_store.delete(handle)
    with pytest.raises(NotFoundError):
        await blob_store.get(handle)


async def test_delete_missing_blob_is_noop(blob_store):
    await blob_store.delete("anonymous/missing.bin")


async def test_path_traversal_is_refused(blob_store):
    with pytest.raises(NotFoundError):
        await blob_store.get("../../etc/passwd")


class FlakyBlobStore(LocalBlobStore):
    """Fails the first ``failures`` reads with a transient error"""

    def __init__(self, failures: int, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.calls = 0

    async def _get(self, handle):
        self.calls += 1
        if self.calls <= self.failures:
            raise StoreUnavailableError("connection reset")
        return await super()._get(handle)


async def test_reads_are_retried(tmp_path):
    store = FlakyBlobStore(failures=2, base_path=str(tmp_path), retry_attempts=3, retry_backoff=0)
    await store.put(b"data", "f.bin", "application/octet-stream")

    assert await store.get("f.bin") == b"data"
    assert store.calls == 3


async def test_retries_give_up(tmp_path):
    store = FlakyBlobStore(failures=5, base_path=str(tmp_path), retry_attempts=2, retry_backoff=0)
    await store.put(b"data", "f.bin", "application/octet-stream")

    with pytest.raises(StoreUnavailableError):
        await store.get("f.bin")
    assert store.calls == 2


async def test_missing_blob_is_not_retried(tmp_path):
    store = FlakyBlobStore(failures=0, base_path=str(tmp_path), retry_attempts=3, retry_backoff=0)
    with pytest.raises(NotFoundError):
        await store.get("missing.bin")
    assert store.calls == 1


async def test_slow_backend_times_out(tmp_path):
    store = LocalBlobStore(base_path=str(tmp_path), timeout=0.05, retry_attempts=1)

    def slow():
        import time
        time.sleep(0.5)

    with pytest.raises(StoreUnavailableError):
        await store._call(slow)
    # let the worker thread finish before the loop closes
    await asyncio.sleep(0.5)
