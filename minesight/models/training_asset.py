"""
TrainingAsset model for operator-uploaded models and datasets.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from datetime import datetime
import enum

from minesight.database import Base


class AssetType(str, enum.Enum):
    """Kind of uploaded asset."""
    MODEL = "model"
    DATASET = "dataset"


class TrainingAsset(Base):
    """
    Model weights or labelled datasets uploaded by an operator.

    Dataset names feed the training-context hint given to the
    prompt classifier.
    """

    __tablename__ = "models"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)  # Storage key in the models bucket
    type = Column(String(20), nullable=False, index=True)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(String(100), nullable=True, index=True)
    is_active = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<TrainingAsset {self.id}: {self.type} {self.name}>"
