from fastapi import APIRouter, Depends, Response, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from filebox.core.database import get_db
from filebox.core.rate_limit import share_rate_limit
from filebox.core.storage import BlobStore, get_blob_store
from filebox.api.deps import get_current_user
from filebox.api.responses import download_response
from filebox.schemas.file import FileSummary
from filebox.schemas.share import ShareInfo, ShareList
from filebox.schemas.user import User
from filebox.services.gateway import AccessGateway
from filebox.services.share import ShareService
from filebox.utils.time import utcnow

router = APIRouter()


@router.get("", response_model=ShareList)
async def list_shares(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """List shares of the current user's files"""
    share_service = ShareService(db, blob_store)
    shares, total = await share_service.list_for_owner(current_user, page, limit)
    now = utcnow()
    return ShareList(
        shares=[ShareService.to_schema(share, share.file, now) for share in shares],
        total=total,
        page=page,
        limit=limit
    )


@router.delete("/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_share(
    share_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Delete a share; its code stops working immediately"""
    share_service = ShareService(db, blob_store)
    await share_service.delete_share(share_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{code}", response_model=ShareInfo, dependencies=[Depends(share_rate_limit)])
async def resolve_share(
    code: str,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Look up the file behind a share code"""
    share_service = ShareService(db, blob_store)
    share, db_file = await share_service.resolve(code)
    return ShareInfo(
        share=ShareService.to_schema(share, db_file),
        file=FileSummary.model_validate(db_file)
    )


@router.get("/{code}/download", dependencies=[Depends(share_rate_limit)])
async def download_shared_file(
    code: str,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Download a shared file; counts against the share's download limit"""
    gateway = AccessGateway(db, blob_store)
    download = await gateway.download_by_code(code)
    return download_response(download)
