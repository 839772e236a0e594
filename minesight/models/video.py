"""
UploadedVideo model for stored video metadata.
"""

from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime

from minesight.database import Base


class UploadedVideo(Base):
    """
    Model for a video written to object storage.

    Rows are immutable once created; the storage key is
    `<epochMillis>_<sanitizedFilename>`.
    """

    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, index=True)
    storage_key = Column(String(300), nullable=False, unique=True, index=True)
    original_filename = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)  # Size in bytes
    mime_type = Column(String(100), nullable=False)
    public_url = Column(String(1000), nullable=True)
    uploaded_by = Column(String(100), nullable=True)

    uploaded_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<UploadedVideo {self.id}: {self.storage_key}>"
