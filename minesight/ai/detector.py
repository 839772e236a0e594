"""
YOLO-based object detector for the geometric rules.

Loads one or more Ultralytics weight files (one per trained dataset, e.g.
drill handling, cylinders, LH machines) and maps their class names onto the
closed label set used by `minesight.ai.geometry`.
"""

import cv2
import numpy as np
from typing import Dict, List, Optional
import logging
from abc import ABC, abstractmethod

from minesight.ai.geometry import DetectedObject, ObjectLabel
from minesight.config import settings

logger = logging.getLogger(__name__)

# Class-name keywords -> label (checked in order, case-insensitive)
CLASS_KEYWORDS = [
    ('lh machine', ObjectLabel.LH_MACHINE),
    ('lh_machine', ObjectLabel.LH_MACHINE),
    ('lh-machine', ObjectLabel.LH_MACHINE),
    ('lhd', ObjectLabel.LH_MACHINE),
    ('person', ObjectLabel.PERSON),
    ('human', ObjectLabel.PERSON),
    ('worker', ObjectLabel.PERSON),
    ('drill', ObjectLabel.DRILL),
    ('beam', ObjectLabel.BEAM),
    ('rod', ObjectLabel.BEAM),
    ('cylinder', ObjectLabel.CYLINDER),
    ('machine', ObjectLabel.MACHINE),
]


def map_class_name(class_name: str) -> Optional[ObjectLabel]:
    """Map a model class name to a rule label, or None if irrelevant."""
    class_lower = class_name.lower()
    for keyword, label in CLASS_KEYWORDS:
        if keyword in class_lower:
            return label
    return None


class ObjectDetector(ABC):
    """Capability: find labelled objects in a JPEG frame."""

    @abstractmethod
    def detect(self, image: bytes) -> List[DetectedObject]:
        ...


class YoloObjectDetector(ObjectDetector):
    """
    Runs every configured YOLO model on a frame and merges the detections.
    """

    def __init__(self, model_paths: Optional[List[str]] = None, confidence: Optional[float] = None):
        from ultralytics import YOLO

        self.model_paths = model_paths or settings.YOLO_MODEL_PATHS
        self.confidence_threshold = confidence if confidence is not None else settings.DETECTOR_CONFIDENCE
        if not self.model_paths:
            raise ValueError("No YOLO model paths configured")

        self.models = []
        for path in self.model_paths:
            try:
                model = YOLO(path)
            except Exception as e:
                logger.error(f"Failed to load YOLO model {path}: {e}")
                raise
            logger.info(f"Loaded YOLO model from {path}, classes: {model.names}")
            self.models.append(model)

    def _decode(self, image: bytes) -> np.ndarray:
        frame = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
        if frame is None:
            raise ValueError("Cannot decode frame image")
        return frame

    def detect(self, image: bytes) -> List[DetectedObject]:
        frame = self._decode(image)
        detections = []

        for model in self.models:
            class_names: Dict[int, str] = model.names
            results = model(frame, conf=self.confidence_threshold, verbose=False)

            for result in results:
                boxes = result.boxes
                if boxes is None:
                    continue

                for i in range(len(boxes)):
                    cls_id = int(boxes.cls[i].cpu().numpy())
                    label = map_class_name(class_names.get(cls_id, f"class_{cls_id}"))
                    if label is None:
                        continue

                    x1, y1, x2, y2 = boxes.xyxy[i].cpu().numpy()
                    detections.append(DetectedObject(
                        label=label,
                        bbox=(float(x1), float(y1), float(x2), float(y2)),
                        confidence=float(boxes.conf[i].cpu().numpy()),
                    ))

        return detections
