from sqlalchemy import Column, String, ForeignKey, DateTime, BigInteger, Integer, Boolean, Uuid
from sqlalchemy.orm import relationship
import uuid

from filebox.core.database import Base
from filebox.utils.time import utcnow


class File(Base):
    __tablename__ = "files"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False)
    content_type = Column(String(100), nullable=False)
    sha256 = Column(String(64), nullable=False)

    # Blob store handle
    object_name = Column(String(255), unique=True, nullable=False, index=True)

    # NULL owner marks an anonymous upload
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    owner = relationship("User", back_populates="files")

    is_public = Column(Boolean, default=False, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Shares are retired explicitly before a file row is deleted
    shares = relationship("Share", back_populates="file", passive_deletes=True)

    @property
    def is_anonymous(self) -> bool:
        return self.owner_id is None
