from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Uuid
from sqlalchemy.orm import relationship
import uuid

from filebox.core.database import Base
from filebox.utils.time import utcnow


class ShareState(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    DELETED = "deleted"


class Share(Base):
    __tablename__ = "shares"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    # NULL once the file is deleted
    file_id = Column(Uuid(as_uuid=True), ForeignKey("files.id", ondelete="SET NULL"), nullable=True, index=True)

    code = Column(String(16), nullable=False, index=True)
    # Same as code until the share is retired; the unique constraint keeps
    # live codes unique while letting retired codes be reused
    active_code = Column(String(16), unique=True, nullable=True)

    expires_at = Column(DateTime, nullable=True)
    download_limit = Column(Integer, nullable=True)
    download_count = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    file = relationship("File", back_populates="shares")

    def state_at(self, now: datetime) -> ShareState:
        if self.deleted_at is not None or self.file_id is None:
            return ShareState.DELETED
        if self.expires_at is not None and now >= self.expires_at:
            return ShareState.EXPIRED
        if self.download_limit is not None and self.download_count >= self.download_limit:
            return ShareState.EXHAUSTED
        return ShareState.ACTIVE
