"""
Application configuration settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Literal, Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./minesight.db"

    # Object storage (local filesystem, served under /storage)
    STORAGE_DIR: str = "storage"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    VIDEO_BUCKET: str = "videos"
    MODEL_BUCKET: str = "models"

    # Upload limits
    MAX_VIDEO_SIZE: int = 250 * 1024 * 1024  # 250MB
    MAX_MODEL_SIZE: int = 100 * 1024 * 1024  # 100MB
    ALLOWED_VIDEO_TYPES: List[str] = [
        "video/mp4",
        "video/avi",
        "video/mov",
        "video/quicktime",
        "video/x-msvideo",
    ]
    MAX_FILENAME_LENGTH: int = 255

    # Frame arithmetic
    # No container probing: every frame number is timestamp * VIDEO_FPS
    VIDEO_FPS: int = 30

    # Frame sampling
    SAMPLE_FRAME_COUNT: int = 6
    SAMPLE_FRAME_WIDTH: int = 640
    SAMPLE_JPEG_QUALITY: int = 75
    MAX_FRAME_TIMESTAMP: float = 24 * 60 * 60  # Client frame timestamps beyond this are ignored

    # Synthetic fallback when no frames can be extracted
    SYNTHETIC_MIN_FRAMES: int = 5
    SYNTHETIC_MAX_FRAMES: int = 8
    SYNTHETIC_FRAME_RANGE: int = 300
    SYNTHETIC_FRAME_OFFSET: int = 10

    # Filename-derived violations
    FILENAME_CONFIDENCE_MIN: float = 0.92
    FILENAME_CONFIDENCE_MAX: float = 0.99

    # Classification
    # "prompt" = external LLM per frame
    # "geometric" = object detector + proximity rules
    # "hybrid" = geometric first, LLM for frames without a rule hit
    DETECTION_STRATEGY: Literal["prompt", "geometric", "hybrid"] = "prompt"
    ACCEPT_THRESHOLD: float = 0.6  # Full label set
    NARROW_ACCEPT_THRESHOLD: float = 0.7  # Label set narrowed by training datasets
    CLASSIFIER_CALL_INTERVAL: float = 0.4  # Seconds between classifier calls

    # External classifier (Anthropic)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLASSIFIER_MODEL: str = "claude-haiku-4-5-20251001"
    CLASSIFIER_MAX_TOKENS: int = 1024

    # Object detector (geometric strategy)
    YOLO_MODEL_PATHS: List[str] = []
    DETECTOR_CONFIDENCE: float = 0.25

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
