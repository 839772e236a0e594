"""
Violation model for detected safety violations.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float
from datetime import datetime
import enum

from minesight.database import Base


class Severity(str, enum.Enum):
    """Violation severity."""
    CRITICAL = "critical"
    WARNING = "warning"


class DetectionMethod(str, enum.Enum):
    """Provenance of a violation."""
    FILENAME_PARSING = "filename_parsing"
    GEOMETRIC_RULE = "geometric_rule"
    AI_FRAME = "ai_frame"  # Real sampled frame sent with image
    AI_SYNTHETIC = "ai_synthetic"  # Text-only prompt for a synthetic frame index


class Violation(Base):
    """
    Model for detected violations.

    Each violation is:
    - Tied to a stored video and a frame number
    - Tagged with how it was detected
    - Insert-only (never updated by the analysis pipeline)
    """

    __tablename__ = "violations"

    id = Column(Integer, primary_key=True, index=True)

    # Violation details
    violation_type = Column(String(200), nullable=False, index=True)
    confidence = Column(Float, nullable=False)  # 0-1, three decimals
    severity = Column(String(20), nullable=False, default=Severity.WARNING.value)
    detection_method = Column(String(50), nullable=False)

    # Source video
    source_type = Column(String(20), nullable=False, default="video")
    source_name = Column(String(500), nullable=True)  # Original filename
    video_path = Column(String(300), nullable=True, index=True)  # Storage key

    # Location in video
    frame_number = Column(Integer, nullable=False)
    video_fps = Column(Integer, nullable=False, default=30)

    # Context the run was analysed with
    training_datasets = Column(Integer, default=0)
    uploaded_by = Column(String(100), nullable=True)

    # Timestamps
    detected_at = Column(DateTime, nullable=False)  # Run start + frame / fps
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Violation {self.id}: {self.violation_type} at frame {self.frame_number}>"
