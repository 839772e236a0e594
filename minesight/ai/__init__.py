"""
AI pipeline package initialization.
"""

from minesight.ai.filename_parser import FilenameHint, parse_filename
from minesight.ai.frame_sampler import FrameExtractionError, SampledFrame, sample_frames
from minesight.ai.geometry import DetectedObject, ObjectLabel, close_and_aligned, evaluate_frame
from minesight.ai.classifier import FrameClassifier, PromptFrameClassifier, ScriptedFrameClassifier
from minesight.ai.pipeline import AnalysisRequest, AnalysisResult, RunState, ViolationPipeline

__all__ = [
    "FilenameHint",
    "parse_filename",
    "FrameExtractionError",
    "SampledFrame",
    "sample_frames",
    "DetectedObject",
    "ObjectLabel",
    "close_and_aligned",
    "evaluate_frame",
    "FrameClassifier",
    "PromptFrameClassifier",
    "ScriptedFrameClassifier",
    "AnalysisRequest",
    "AnalysisResult",
    "RunState",
    "ViolationPipeline",
]
