"""
Violation analysis pipeline.

One run per uploaded video:

    INIT -> FILENAME_CHECK -> FILENAME_DERIVED ---------------------> RECORDED -> DONE
                          \-> FRAME_SAMPLING -> CLASSIFY ----------/

- A filename hint is treated as ground truth: three candidate frames around
  the claimed timestamp are recorded and nothing else is classified.
- Otherwise frames come from the client, from server-side sampling, or, when
  extraction fails, from synthetic frame indices sent as text-only prompts.
- Each frame number is claimed by at most one unit of work per run.
- Candidates are written one by one; a failed write never stops the others.

Frame numbers assume a fixed frame rate (30 FPS by default); the container's
real rate is never probed.
"""

import asyncio
import enum
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN
from typing import Callable, List, Optional, Set

from minesight.ai.classifier import ClassificationError, FrameClassifier, FrameUnit
from minesight.ai.detector import ObjectDetector
from minesight.ai.filename_parser import FilenameHint, parse_filename
from minesight.ai.frame_sampler import MIN_SAMPLE_COUNT, FrameExtractionError, SampledFrame, sample_frames
from minesight.ai.geometry import evaluate_frame
from minesight.ai.prompts import TrainingContext
from minesight.ai.rate_limiter import NoopLimiter, TokenBucket
from minesight.config import settings
from minesight.models.violation import DetectionMethod, Severity

logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    """States of one analysis run."""
    INIT = "init"
    FILENAME_CHECK = "filename_check"
    FILENAME_DERIVED = "filename_derived"
    FRAME_SAMPLING = "frame_sampling"
    CLASSIFY = "classify"
    RECORDED = "recorded"
    DONE = "done"
    FAILED = "failed"


def truncate_confidence(value: float) -> float:
    """Cut a confidence down to three decimal places."""
    return float(Decimal(str(value)).quantize(Decimal("0.001"), rounding=ROUND_DOWN))


def timestamp_to_frame(timestamp_seconds: float, fps: int) -> int:
    """Frame index at a timestamp, never negative."""
    return max(0, int(round(timestamp_seconds * fps)))


@dataclass
class AnalysisRequest:
    """Input of one run."""
    video_name: str
    video_path: str  # Storage key
    local_path: Optional[str] = None  # Readable copy for server-side sampling
    uploaded_by: Optional[str] = None
    client_frames: List[SampledFrame] = field(default_factory=list)


@dataclass
class ViolationCandidate:
    """An accepted violation, ready to be recorded."""
    violation_type: str
    confidence: float
    frame_number: int
    detected_at: datetime
    severity: str
    detection_method: str
    source_name: str
    video_path: str
    source_type: str = "video"
    video_fps: int = 30
    training_datasets: int = 0
    uploaded_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "violation_type": self.violation_type,
            "confidence": f"{self.confidence:.3f}",
            "source_type": self.source_type,
            "source_name": self.source_name,
            "video_path": self.video_path,
            "frame_number": self.frame_number,
            "detected_at": self.detected_at.isoformat(),
            "metadata": {
                "severity": self.severity,
                "detection_method": self.detection_method,
                "video_fps": self.video_fps,
                "training_datasets": self.training_datasets,
            },
        }


@dataclass
class AnalysisResult:
    """Outcome of one run."""
    violations: List[ViolationCandidate] = field(default_factory=list)
    states: List[RunState] = field(default_factory=list)
    hint: Optional[FilenameHint] = None
    failed_writes: int = 0

    @property
    def state(self) -> RunState:
        return self.states[-1] if self.states else RunState.INIT


@dataclass
class _RunContext:
    request: AnalysisRequest
    started_at: datetime
    result: AnalysisResult
    seen_frames: Set[int] = field(default_factory=set)

    def claim(self, frame_number: int) -> bool:
        """Reserve a frame number; False if already used in this run."""
        if frame_number in self.seen_frames:
            return False
        self.seen_frames.add(frame_number)
        return True


class ViolationPipeline:
    """
    Runs filename parsing, frame sampling, classification and recording
    for a single uploaded video.
    """

    def __init__(
        self,
        recorder,
        classifier: Optional[FrameClassifier] = None,
        detector: Optional[ObjectDetector] = None,
        context: Optional[TrainingContext] = None,
        limiter=None,
        strategy: Optional[str] = None,
        sampler: Callable[..., List[SampledFrame]] = sample_frames,
        fps: Optional[int] = None,
        sample_count: Optional[int] = None,
        accept_threshold: Optional[float] = None,
        rng: Optional[random.Random] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.recorder = recorder
        self.classifier = classifier
        self.detector = detector
        self.context = context or TrainingContext()
        self.strategy = strategy or settings.DETECTION_STRATEGY
        self.sampler = sampler
        self.fps = fps if fps is not None else settings.VIDEO_FPS
        self.sample_count = sample_count if sample_count is not None else settings.SAMPLE_FRAME_COUNT
        if self.fps <= 0:
            raise ValueError(f"fps must be positive, got {self.fps}")
        if self.sample_count < MIN_SAMPLE_COUNT:
            raise ValueError(f"Frame sample count must be at least {MIN_SAMPLE_COUNT}, got {self.sample_count}")
        self.rng = rng or random.Random()
        self.now = now

        if limiter is None:
            interval = settings.CLASSIFIER_CALL_INTERVAL
            limiter = TokenBucket.from_interval(interval) if interval > 0 else NoopLimiter()
        self.limiter = limiter

        if accept_threshold is None:
            # Stricter when the label set was narrowed by training datasets
            accept_threshold = (
                settings.NARROW_ACCEPT_THRESHOLD if self.context.narrowed
                else settings.ACCEPT_THRESHOLD
            )
        self.accept_threshold = accept_threshold

    @property
    def uses_prompt(self) -> bool:
        return self.strategy in ("prompt", "hybrid") and self.classifier is not None

    @property
    def uses_geometry(self) -> bool:
        return self.strategy in ("geometric", "hybrid") and self.detector is not None

    def _transition(self, run: _RunContext, state: RunState):
        logger.debug(f"[{run.request.video_path}] {run.result.state.value} -> {state.value}")
        run.result.states.append(state)

    async def run(self, request: AnalysisRequest) -> AnalysisResult:
        run = _RunContext(
            request=request,
            started_at=self.now(),
            result=AnalysisResult(states=[RunState.INIT]),
        )

        try:
            self._transition(run, RunState.FILENAME_CHECK)
            hint = parse_filename(request.video_name)
            run.result.hint = hint

            if hint.found:
                self._transition(run, RunState.FILENAME_DERIVED)
                candidates = self._filename_candidates(hint, run)
                logger.info(f"Using filename violation information for {request.video_name}")
            else:
                self._transition(run, RunState.FRAME_SAMPLING)
                units = await self._frame_units(run)
                self._transition(run, RunState.CLASSIFY)
                candidates = await self._classify_units(units, run)

            await self._record(candidates, run)
            self._transition(run, RunState.RECORDED)
        except Exception:
            self._transition(run, RunState.FAILED)
            raise

        self._transition(run, RunState.DONE)
        logger.info(f"Analysis complete for {request.video_name}. Found {len(run.result.violations)} violations.")
        return run.result

    # ---- candidate construction ----

    def _candidate(
        self,
        run: _RunContext,
        violation_type: str,
        confidence: float,
        frame_number: int,
        severity: str,
        method: DetectionMethod,
    ) -> ViolationCandidate:
        return ViolationCandidate(
            violation_type=violation_type,
            confidence=truncate_confidence(confidence),
            frame_number=frame_number,
            detected_at=run.started_at + timedelta(seconds=frame_number / self.fps),
            severity=severity,
            detection_method=method.value,
            source_name=run.request.video_name,
            video_path=run.request.video_path,
            video_fps=self.fps,
            training_datasets=self.context.dataset_count,
            uploaded_by=run.request.uploaded_by,
        )

    def _filename_candidates(self, hint: FilenameHint, run: _RunContext) -> List[ViolationCandidate]:
        frame_number = int(math.floor(hint.timestamp_seconds * self.fps))
        frames = [f for f in (frame_number - 1, frame_number, frame_number + 1) if f >= 0]

        candidates = []
        for frame in frames:
            if not run.claim(frame):
                continue
            confidence = self.rng.uniform(settings.FILENAME_CONFIDENCE_MIN, settings.FILENAME_CONFIDENCE_MAX)
            candidates.append(self._candidate(
                run,
                hint.violation_label,
                confidence,
                frame,
                Severity.CRITICAL.value,
                DetectionMethod.FILENAME_PARSING,
            ))
        return candidates

    # ---- frame units ----

    async def _frame_units(self, run: _RunContext) -> List[FrameUnit]:
        if not self.uses_prompt and not self.uses_geometry:
            logger.warning("No classifier or detector configured - skipping frame analysis")
            return []

        frames = run.request.client_frames
        if not frames and run.request.local_path:
            loop = asyncio.get_running_loop()
            try:
                frames = await loop.run_in_executor(
                    None,
                    lambda: self.sampler(run.request.local_path, self.sample_count)
                )
            except FrameExtractionError as e:
                logger.warning(f"Frame extraction failed, using synthetic frames: {e}")
                frames = []

        if frames:
            return self._real_units(frames, run)
        return self._synthetic_units(run)

    def _real_units(self, frames: List[SampledFrame], run: _RunContext) -> List[FrameUnit]:
        units = []
        for frame in frames:
            frame_number = timestamp_to_frame(frame.timestamp_seconds, self.fps)
            if not run.claim(frame_number):
                continue
            units.append(FrameUnit(
                frame_number=frame_number,
                timestamp_seconds=frame.timestamp_seconds,
                image=frame.image,
                media_type=frame.media_type,
            ))
        return units

    def _synthetic_units(self, run: _RunContext) -> List[FrameUnit]:
        count = self.rng.randint(settings.SYNTHETIC_MIN_FRAMES, settings.SYNTHETIC_MAX_FRAMES)
        units = []
        for i in range(count):
            frame_number = int(i / count * settings.SYNTHETIC_FRAME_RANGE) + settings.SYNTHETIC_FRAME_OFFSET
            if not run.claim(frame_number):
                continue
            units.append(FrameUnit(frame_number=frame_number))
        return units

    # ---- classification ----

    async def _classify_units(self, units: List[FrameUnit], run: _RunContext) -> List[ViolationCandidate]:
        candidates = []
        for unit in units:
            if self.uses_geometry and not unit.is_synthetic:
                hits = await self._geometric_candidates(unit, run)
                if hits:
                    candidates.extend(hits)
                    continue

            if self.uses_prompt:
                candidate = await self._prompt_candidate(unit, run)
                if candidate is not None:
                    candidates.append(candidate)
        return candidates

    async def _geometric_candidates(self, unit: FrameUnit, run: _RunContext) -> List[ViolationCandidate]:
        loop = asyncio.get_running_loop()
        try:
            objects = await loop.run_in_executor(None, lambda: self.detector.detect(unit.image))
        except Exception as e:
            logger.warning(f"Object detection failed on frame {unit.frame_number}: {e}")
            return []

        return [
            self._candidate(
                run,
                hit.violation_type,
                hit.confidence,
                unit.frame_number,
                Severity.CRITICAL.value,
                DetectionMethod.GEOMETRIC_RULE,
            )
            for hit in evaluate_frame(objects)
        ]

    async def _prompt_candidate(self, unit: FrameUnit, run: _RunContext) -> Optional[ViolationCandidate]:
        await self.limiter.acquire()
        try:
            result = await self.classifier.classify(unit)
        except ClassificationError as e:
            logger.warning(f"Classification failed for frame {unit.frame_number}: {e}")
            return None

        if not result.has_violation or result.confidence <= self.accept_threshold:
            logger.debug(
                f"Frame {unit.frame_number}: rejected ({result.violation_type}, {result.confidence:.3f})"
            )
            return None

        method = DetectionMethod.AI_SYNTHETIC if unit.is_synthetic else DetectionMethod.AI_FRAME
        return self._candidate(
            run,
            result.violation_type,
            result.confidence,
            unit.frame_number,
            result.severity,
            method,
        )

    # ---- recording ----

    async def _record(self, candidates: List[ViolationCandidate], run: _RunContext):
        for candidate in candidates:
            try:
                await self.recorder.record(candidate)
            except Exception as e:
                logger.error(
                    f"Failed to record {candidate.violation_type} at frame {candidate.frame_number}: {e}"
                )
                run.result.failed_writes += 1
                continue
            run.result.violations.append(candidate)
