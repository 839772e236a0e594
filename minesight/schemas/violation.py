"""
Violation schemas for API request/response validation.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from enum import Enum


class Severity(str, Enum):
    """Severity enum."""
    CRITICAL = "critical"
    WARNING = "warning"


class ViolationResponse(BaseModel):
    """Schema for violation responses."""
    id: int
    violation_type: str
    confidence: float
    severity: str
    detection_method: str
    source_type: str
    source_name: Optional[str] = None
    video_path: Optional[str] = None
    frame_number: int
    video_fps: int
    training_datasets: int = 0
    uploaded_by: Optional[str] = None
    detected_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ViolationListResponse(BaseModel):
    """Schema for paginated violation list."""
    items: List[ViolationResponse]
    total: int
    page: int
    page_size: int


class JumpTarget(BaseModel):
    """Where the player should seek to show a violation."""
    violation_id: int
    video_path: Optional[str] = None
    video_url: Optional[str] = None
    frame_number: int
    seconds: float
