from typing import Optional
from fastapi import APIRouter, Depends, Response, status, UploadFile, File as FastAPIFile, Form, Query
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from filebox.core.config import settings
from filebox.core.database import get_db
from filebox.core.rate_limit import upload_rate_limit
from filebox.core.storage import BlobStore, get_blob_store
from filebox.api.deps import get_access_token, get_current_user
from filebox.api.responses import download_response, optional_int, optional_str, read_upload
from filebox.schemas.file import File, FileList, FileSummary, FileUpdate
from filebox.schemas.share import Share, ShareCreate, ShareInfo
from filebox.schemas.user import User
from filebox.services.file import FileService
from filebox.services.gateway import AccessGateway
from filebox.services.share import ShareService

router = APIRouter()


@router.post("", response_model=File, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = FastAPIFile(...),
    is_public: bool = Form(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Upload a new file"""
    file_service = FileService(db, blob_store)
    content = await read_upload(file, settings.MAX_FILE_SIZE_BYTES)
    return await file_service.upload_file(
        content=content,
        filename=file.filename,
        content_type=file.content_type,
        user=current_user,
        is_public=is_public
    )


@router.post(
    "/anonymous",
    response_model=ShareInfo,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(upload_rate_limit)]
)
async def upload_anonymous_file(
    file: UploadFile = FastAPIFile(...),
    code: Optional[str] = Form(None),
    expires_in: Optional[str] = Form(None),
    download_limit: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Upload a file without an account and get a share code for it"""
    share_data = ShareCreate(
        code=optional_str(code),
        expires_in=optional_int(expires_in, "expires_in"),
        download_limit=optional_int(download_limit, "download_limit")
    )
    share_service = ShareService(db, blob_store)
    content = await read_upload(file, settings.MAX_ANONYMOUS_FILE_SIZE_BYTES)
    share, db_file = await share_service.upload_anonymous(
        content=content,
        filename=file.filename,
        content_type=file.content_type,
        share_data=share_data
    )
    return ShareInfo(
        share=ShareService.to_schema(share, db_file),
        file=FileSummary.model_validate(db_file)
    )


@router.get("", response_model=FileList)
async def list_files(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """List current user's files"""
    file_service = FileService(db, blob_store)
    files, total = await file_service.list_user_files(current_user, page, limit)
    return FileList(
        files=[File.model_validate(f) for f in files],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/{file_id}", response_model=File)
async def get_file(
    file_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Get file metadata"""
    file_service = FileService(db, blob_store)
    return await file_service.get_owned_file(file_id, current_user)


@router.put("/{file_id}", response_model=File)
async def update_file(
    file_id: uuid.UUID,
    file_update: FileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Update file metadata"""
    file_service = FileService(db, blob_store)
    return await file_service.update_file(file_id, current_user, file_update)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Delete a file and retire all of its shares"""
    file_service = FileService(db, blob_store)
    await file_service.delete_file(file_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{file_id}/download")
async def download_file(
    file_id: uuid.UUID,
    access_token: str = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Download file content"""
    gateway = AccessGateway(db, blob_store)
    download = await gateway.download_as_owner(access_token, file_id)
    return download_response(download)


@router.post("/{file_id}/share", response_model=Share, status_code=status.HTTP_201_CREATED)
async def create_share(
    file_id: uuid.UUID,
    share_data: ShareCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Create a share code for a file"""
    share_service = ShareService(db, blob_store)
    share, db_file = await share_service.create_share(file_id, current_user, share_data)
    return ShareService.to_schema(share, db_file)
