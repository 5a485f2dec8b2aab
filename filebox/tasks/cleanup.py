"""Periodic sweep of inactive shares and abandoned anonymous uploads.

Expiry and download limits are enforced at request time, so the sweep only
reclaims space: it releases codes held by shares that can no longer serve and
deletes anonymous files no active share points at.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from filebox.core.config import settings
from filebox.core.storage import BlobStore
from filebox.repositories.file import FileRepository
from filebox.repositories.share import ShareRepository
from filebox.utils.exceptions import FileboxException
from filebox.utils.time import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    codes_released: int = 0
    files_deleted: int = 0
    failed_deletes: int = 0


async def run_cleanup_once(
    session_factory: Callable[[], AsyncSession],
    blob_store: BlobStore,
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None
) -> CleanupResult:
    """One pass of the sweep"""
    now = now or utcnow()
    batch_size = batch_size or settings.CLEANUP_BATCH_SIZE
    result = CleanupResult()

    async with session_factory() as db:
        share_repo = ShareRepository(db)
        file_repo = FileRepository(db)

        result.codes_released = await share_repo.release_inactive_codes(now)
        await db.commit()

        for db_file in await share_repo.get_abandoned_anonymous_files(now, batch_size):
            # The row goes only once its blob is gone
            try:
                await blob_store.delete(db_file.object_name)
            except FileboxException as e:
                result.failed_deletes += 1
                logger.error(f"Failed to delete blob {db_file.object_name} after retries: {e.message}")
                continue
            await share_repo.retire_for_file(db_file.id, now)
            await file_repo.delete(db_file)
            await db.commit()
            result.files_deleted += 1

    return result


async def cleanup_loop(session_factory: Callable[[], AsyncSession], blob_store: BlobStore) -> None:
    interval = settings.CLEANUP_INTERVAL_SECONDS
    logger.info(f"Cleanup task started: interval={interval}s batch={settings.CLEANUP_BATCH_SIZE}")

    while True:
        try:
            started = utcnow()
            result = await run_cleanup_once(session_factory, blob_store)
            duration = (utcnow() - started).total_seconds()
            logger.info(
                f"Cleanup pass: codes_released={result.codes_released} "
                f"files_deleted={result.files_deleted} failed_deletes={result.failed_deletes} "
                f"duration={duration:.3f}s"
            )
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled by shutdown")
            raise
        except Exception as e:
            logger.exception(f"Cleanup loop error: {e}")
            await asyncio.sleep(min(60, interval))


def start_cleanup_task(session_factory: Callable[[], AsyncSession], blob_store: BlobStore) -> Optional[asyncio.Task]:
    """Schedule the sweep on the running loop; None when disabled"""
    if settings.CLEANUP_INTERVAL_SECONDS <= 0:
        logger.info("Cleanup task disabled")
        return None
    return asyncio.create_task(cleanup_loop(session_factory, blob_store))
