"""
Training asset schemas (uploaded models and datasets).
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class TrainingAssetResponse(BaseModel):
    """Schema for uploaded model/dataset responses."""
    id: int
    name: str
    file_path: str
    type: str
    file_size: int
    mime_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    is_active: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class TrainingAssetListResponse(BaseModel):
    """Schema for training asset list."""
    items: List[TrainingAssetResponse]
    total: int
