"""
Frame classifiers.

A frame classifier answers one question per unit of work: does this frame
show a violation, which one, how sure, how severe. The prompt-based
implementation asks an external LLM; the scripted one replays fixed answers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from minesight.ai.prompts import TrainingContext, build_frame_prompt, build_report_tool
from minesight.services.llm_client import LLMError, call_tool_async

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised when a single unit of work cannot be classified."""


class ClassificationResult(BaseModel):
    """Structured reply of the report_violation tool."""
    has_violation: bool
    violation_type: str
    confidence: float = Field(ge=0.0, le=1.0)
    severity: Literal["critical", "warning"]


@dataclass
class FrameUnit:
    """
    One unit of classification work.

    Real frames carry an image and a timestamp; synthetic units only carry
    a frame number.
    """
    frame_number: int
    timestamp_seconds: Optional[float] = None
    image: Optional[bytes] = None
    media_type: str = "image/jpeg"

    @property
    def is_synthetic(self) -> bool:
        return self.image is None


class FrameClassifier(ABC):
    """Capability: classify one frame unit."""

    @abstractmethod
    async def classify(self, unit: FrameUnit) -> ClassificationResult:
        ...


class PromptFrameClassifier(FrameClassifier):
    """
    Sends each unit to the external LLM with a forced report_violation call.
    """

    def __init__(self, client, context: Optional[TrainingContext] = None, model: Optional[str] = None):
        self.client = client
        self.context = context or TrainingContext()
        self.model = model
        self.tool = build_report_tool(self.context.label_set)

    async def classify(self, unit: FrameUnit) -> ClassificationResult:
        prompt = build_frame_prompt(
            self.context,
            timestamp_seconds=None if unit.is_synthetic else unit.timestamp_seconds,
            frame_number=unit.frame_number,
        )

        try:
            arguments = await call_tool_async(
                self.client,
                prompt,
                self.tool,
                image=unit.image,
                media_type=unit.media_type,
                model=self.model,
            )
        except LLMError as e:
            raise ClassificationError(str(e)) from e

        try:
            return ClassificationResult.model_validate(arguments)
        except ValidationError as e:
            raise ClassificationError(f"Malformed classifier reply: {e}") from e


ScriptedReply = Union[ClassificationResult, dict, Exception]


class ScriptedFrameClassifier(FrameClassifier):
    """
    Deterministic classifier.

    Replies are taken from `replies` in call order, or from `by_frame`
    keyed on frame number. An Exception reply is raised as a
    ClassificationError. Units with no scripted reply get "no violation".
    """

    def __init__(
        self,
        replies: Optional[Iterable[ScriptedReply]] = None,
        by_frame: Optional[Dict[int, ScriptedReply]] = None,
        default: Optional[Callable[[FrameUnit], ClassificationResult]] = None,
    ):
        self.replies: List[ScriptedReply] = list(replies or [])
        self.by_frame = dict(by_frame or {})
        self.default = default
        self.calls: List[FrameUnit] = []

    def _next_reply(self, unit: FrameUnit) -> Optional[ScriptedReply]:
        if unit.frame_number in self.by_frame:
            return self.by_frame[unit.frame_number]
        if self.replies:
            return self.replies.pop(0)
        if self.default is not None:
            return self.default(unit)
        return None

    async def classify(self, unit: FrameUnit) -> ClassificationResult:
        self.calls.append(unit)
        reply = self._next_reply(unit)

        if reply is None:
            return ClassificationResult(
                has_violation=False,
                violation_type="Collision Risk",
                confidence=0.0,
                severity="warning",
            )
        if isinstance(reply, Exception):
            raise ClassificationError(str(reply)) from reply
        if isinstance(reply, dict):
            try:
                return ClassificationResult.model_validate(reply)
            except ValidationError as e:
                raise ClassificationError(f"Malformed classifier reply: {e}") from e
        return reply
