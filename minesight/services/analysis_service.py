"""
Video analysis service.
Validates uploads, stores them and runs the violation pipeline.
"""

import json
import math
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from minesight.ai.classifier import FrameClassifier, PromptFrameClassifier
from minesight.ai.detector import ObjectDetector
from minesight.ai.frame_sampler import SampledFrame
from minesight.ai.pipeline import AnalysisRequest, AnalysisResult, ViolationPipeline
from minesight.ai.prompts import TrainingContext, build_training_context
from minesight.config import settings
from minesight.models import TrainingAsset, UploadedVideo
from minesight.models.training_asset import AssetType
from minesight.services.llm_client import create_async_client
from minesight.services.recorder import ViolationRecorder
from minesight.services.storage import LocalObjectStorage, build_storage_key, sanitize_filename

logger = logging.getLogger(__name__)


class InvalidUploadError(Exception):
    """Raised for uploads rejected before any work is done."""


@dataclass
class VideoUpload:
    """Everything the upload form carried."""
    video_name: Optional[str]
    content_type: Optional[str]
    data: Optional[bytes]
    uploaded_by: Optional[str] = None
    frames: List[SampledFrame] = field(default_factory=list)


def validate_upload(upload: VideoUpload) -> str:
    """
    Check payload, size, MIME type and filename.

    Returns the sanitized filename.
    """
    if not upload.data:
        raise InvalidUploadError("Invalid file upload")

    if len(upload.data) > settings.MAX_VIDEO_SIZE:
        limit_mb = settings.MAX_VIDEO_SIZE // (1024 * 1024)
        raise InvalidUploadError(f"File size exceeds {limit_mb}MB limit")

    if upload.content_type not in settings.ALLOWED_VIDEO_TYPES:
        raise InvalidUploadError("Invalid file type. Only MP4, AVI, and MOV are allowed")

    sanitized = sanitize_filename(upload.video_name)
    if not sanitized:
        raise InvalidUploadError("Invalid filename")

    return sanitized


def _usable_timestamp(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return 0 <= value <= settings.MAX_FRAME_TIMESTAMP and math.isfinite(value)


def parse_client_frames(images: List[bytes], frames_meta: Optional[str]) -> List[SampledFrame]:
    """
    Pair client-sampled JPEG frames with their timestamps.

    `frames_meta` is a JSON list of seconds; a missing, non-numeric,
    non-finite, negative or out-of-range entry for frame i falls back to
    (i + 1) * 2 seconds.
    """
    frame_times: list = []
    if frames_meta:
        try:
            frame_times = json.loads(frames_meta)
        except ValueError:
            logger.warning("Invalid frames_meta JSON")
        if not isinstance(frame_times, list):
            frame_times = []

    frames = []
    for i, image in enumerate(images):
        timestamp = frame_times[i] if i < len(frame_times) else None
        if not _usable_timestamp(timestamp):
            timestamp = (i + 1) * 2
        frames.append(SampledFrame(image=image, timestamp_seconds=float(timestamp)))
    return frames


async def load_training_context(db: AsyncSession, user_id: Optional[str]) -> TrainingContext:
    """Build the training context from the requester's uploaded datasets."""
    if not user_id:
        return TrainingContext()

    result = await db.execute(
        select(TrainingAsset.name)
        .where(TrainingAsset.uploaded_by == user_id)
        .where(TrainingAsset.type == AssetType.DATASET.value)
        .order_by(TrainingAsset.created_at.desc())
    )
    names = [row[0] for row in result.all()]
    context = build_training_context(names)
    if names:
        logger.info(f"Found {len(names)} training datasets, categories: {context.categories}")
    return context


def build_prompt_classifier(context: TrainingContext) -> Optional[FrameClassifier]:
    """LLM classifier, or None when no credential is configured."""
    client = create_async_client()
    if client is None:
        return None
    return PromptFrameClassifier(client, context)


async def active_model_paths(db: AsyncSession, storage: LocalObjectStorage) -> Tuple[str, ...]:
    """Local weight files of the activated model, if any."""
    result = await db.execute(
        select(TrainingAsset.file_path)
        .where(TrainingAsset.type == AssetType.MODEL.value)
        .where(TrainingAsset.is_active.is_(True))
    )
    return tuple(storage.path_for(settings.MODEL_BUCKET, key) for key in result.scalars().all())


@lru_cache(maxsize=4)
def build_detector(model_paths: Tuple[str, ...] = ()) -> Optional[ObjectDetector]:
    """
    YOLO detector for the geometric strategy, or None when not configured.

    Configured YOLO_MODEL_PATHS win over the activated uploaded model.
    """
    if settings.DETECTION_STRATEGY not in ("geometric", "hybrid"):
        return None
    paths = list(settings.YOLO_MODEL_PATHS or model_paths)
    if not paths:
        logger.warning("Geometric detection requested but no YOLO model is configured or active")
        return None

    from minesight.ai.detector import YoloObjectDetector
    return YoloObjectDetector(model_paths=paths)


class AnalysisService:
    """
    Entry point for one upload: validate, store, analyse, record.
    """

    def __init__(
        self,
        storage: Optional[LocalObjectStorage] = None,
        recorder=None,
        classifier_factory: Callable[[TrainingContext], Optional[FrameClassifier]] = None,
        detector_factory: Callable[[Tuple[str, ...]], Optional[ObjectDetector]] = build_detector,
        pipeline_options: Optional[dict] = None,
    ):
        self.storage = storage or LocalObjectStorage()
        self.recorder = recorder or ViolationRecorder()
        self.classifier_factory = classifier_factory or build_prompt_classifier
        self.detector_factory = detector_factory
        self.pipeline_options = pipeline_options or {}

    async def analyze(self, db: AsyncSession, upload: VideoUpload) -> AnalysisResult:
        """
        Raises:
            InvalidUploadError: fatal input error, nothing stored.
            StorageError: the video could not be written.
        """
        sanitized = validate_upload(upload)
        size_mb = len(upload.data) / (1024 * 1024)
        logger.info(f"Processing video: {upload.video_name} ({size_mb:.2f} MB)")

        context = await load_training_context(db, upload.uploaded_by)
        model_paths = await active_model_paths(db, self.storage)

        storage_key = build_storage_key(sanitized)
        local_path = await self.storage.put(
            settings.VIDEO_BUCKET, storage_key, upload.data, upload.content_type
        )

        video = UploadedVideo(
            storage_key=storage_key,
            original_filename=upload.video_name,
            file_size=len(upload.data),
            mime_type=upload.content_type,
            public_url=self.storage.public_url(settings.VIDEO_BUCKET, storage_key),
            uploaded_by=upload.uploaded_by,
        )
        db.add(video)
        await db.commit()

        classifier = self.classifier_factory(context)

        pipeline = ViolationPipeline(
            recorder=self.recorder,
            classifier=classifier,
            detector=self.detector_factory(model_paths),
            context=context,
            **self.pipeline_options,
        )

        return await pipeline.run(AnalysisRequest(
            video_name=upload.video_name,
            video_path=storage_key,
            local_path=local_path,
            uploaded_by=upload.uploaded_by,
            client_frames=upload.frames,
        ))


def get_analysis_service() -> AnalysisService:
    """Dependency returning the default service."""
    return AnalysisService()
