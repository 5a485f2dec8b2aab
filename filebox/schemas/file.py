from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime
import uuid


class FileUpdate(BaseModel):
    name: Optional[str] = None
    is_public: Optional[bool] = None


class File(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    size: int
    content_type: str
    sha256: str
    owner_id: Optional[uuid.UUID] = None
    is_public: bool
    download_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class FileList(BaseModel):
    files: List[File]
    total: int
    page: int
    limit: int


class FileSummary(BaseModel):
    """Public view of a shared file"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    size: int
    content_type: str
    created_at: datetime
