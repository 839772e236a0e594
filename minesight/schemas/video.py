"""
Video schemas for API request/response validation.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class VideoResponse(BaseModel):
    """Schema for stored video responses."""
    id: int
    storage_key: str
    original_filename: str
    file_size: int
    mime_type: str
    public_url: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: datetime
    total_violations: int = 0

    class Config:
        from_attributes = True


class VideoListResponse(BaseModel):
    """Schema for paginated video list."""
    items: List[VideoResponse]
    total: int
    page: int
    page_size: int


class ViolationMetadata(BaseModel):
    """Provenance attached to each analysis result."""
    severity: str
    detection_method: str
    video_fps: int
    training_datasets: int


class ViolationDetail(BaseModel):
    """One violation produced by an analysis run."""
    violation_type: str
    confidence: str  # Three decimal places
    source_type: str
    source_name: str
    video_path: str
    frame_number: int
    detected_at: str
    metadata: ViolationMetadata


class AnalyzeResponse(BaseModel):
    """Successful analysis run."""
    success: bool = True
    violations: int
    details: List[ViolationDetail]


class AnalyzeErrorResponse(BaseModel):
    """Rejected or failed analysis run."""
    success: bool = False
    error: str
