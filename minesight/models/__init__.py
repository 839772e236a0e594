"""
Models package initialization.
"""

from minesight.models.video import UploadedVideo
from minesight.models.violation import Violation
from minesight.models.training_asset import TrainingAsset

__all__ = ["UploadedVideo", "Violation", "TrainingAsset"]
