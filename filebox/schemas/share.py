from typing import List, Optional
from pydantic import BaseModel
from datetime import datetime
import uuid

from filebox.models.share import ShareState
from filebox.schemas.file import FileSummary


class ShareCreate(BaseModel):
    code: Optional[str] = None
    expires_in: Optional[int] = None  # hours
    download_limit: Optional[int] = None


class Share(BaseModel):
    id: uuid.UUID
    file_id: Optional[uuid.UUID] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    content_type: Optional[str] = None
    code: str
    status: ShareState
    expires_at: Optional[datetime] = None
    download_limit: Optional[int] = None
    download_count: int
    created_at: datetime


class ShareList(BaseModel):
    shares: List[Share]
    total: int
    page: int
    limit: int


class ShareInfo(BaseModel):
    """Response of a code lookup"""
    share: Share
    file: FileSummary
