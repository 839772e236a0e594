"""
Still-frame sampling from stored videos.

Frames are taken at evenly spaced timestamps, scaled to a fixed width and
JPEG-encoded so they can be sent to the external classifier as images.
"""

import cv2
import logging
from dataclasses import dataclass
from typing import List, Optional

from minesight.config import settings

logger = logging.getLogger(__name__)

MIN_SAMPLE_COUNT = 3


class FrameExtractionError(Exception):
    """Raised when a video cannot be decoded or seeked."""


@dataclass
class SampledFrame:
    """A JPEG snapshot of the video at a given time."""
    image: bytes
    timestamp_seconds: float
    media_type: str = "image/jpeg"


def sample_timestamps(duration: float, count: int) -> List[float]:
    """Evenly spaced timestamps strictly inside (0, duration)."""
    return [(i + 1) / (count + 1) * duration for i in range(count)]


def _resize_to_width(frame, width: int):
    height, current_width = frame.shape[:2]
    if current_width == width:
        return frame
    scaled_height = max(1, int(round(height * width / current_width)))
    return cv2.resize(frame, (width, scaled_height), interpolation=cv2.INTER_AREA)


def encode_jpeg(frame, quality: int) -> bytes:
    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise FrameExtractionError("JPEG encoding failed")
    return buffer.tobytes()


def sample_frames(
    video_path: str,
    count: Optional[int] = None,
    width: Optional[int] = None,
    quality: Optional[int] = None,
) -> List[SampledFrame]:
    """
    Capture `count` frames from the video at (i+1)/(count+1) of its duration.

    Seeks are issued one after another on a single capture handle.

    Raises:
        ValueError: count is below the minimum of 3.
        FrameExtractionError: duration unknown or any seek/read fails.
    """
    count = count if count is not None else settings.SAMPLE_FRAME_COUNT
    width = width or settings.SAMPLE_FRAME_WIDTH
    quality = quality or settings.SAMPLE_JPEG_QUALITY

    if count < MIN_SAMPLE_COUNT:
        raise ValueError(f"Frame sample count must be at least {MIN_SAMPLE_COUNT}, got {count}")

    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise FrameExtractionError(f"Cannot open video: {video_path}")

    try:
        fps = cap.get(cv2.CAP_PROP_FPS)
        total_frames = cap.get(cv2.CAP_PROP_FRAME_COUNT)
        if not fps or fps <= 0 or not total_frames or total_frames <= 0:
            raise FrameExtractionError(f"Cannot determine duration of {video_path}")

        duration = total_frames / fps
        logger.info(f"Sampling {count} frames from {video_path} ({duration:.2f}s at {fps:.1f} FPS)")

        frames = []
        for timestamp in sample_timestamps(duration, count):
            cap.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
            ret, frame = cap.read()
            if not ret or frame is None:
                raise FrameExtractionError(f"Failed to read frame at {timestamp:.2f}s")

            frame = _resize_to_width(frame, width)
            frames.append(SampledFrame(
                image=encode_jpeg(frame, quality),
                timestamp_seconds=timestamp,
            ))

        return frames
    finally:
        cap.release()
