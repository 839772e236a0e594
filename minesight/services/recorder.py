"""
Violation recorder.

Persists accepted candidates, one transaction per violation so a failing
write never takes its siblings down with it.
"""

import logging

from minesight.ai.pipeline import ViolationCandidate
from minesight.database import async_session_maker
from minesight.models import Violation

logger = logging.getLogger(__name__)


def candidate_to_row(candidate: ViolationCandidate) -> Violation:
    return Violation(
        violation_type=candidate.violation_type,
        confidence=candidate.confidence,
        severity=candidate.severity,
        detection_method=candidate.detection_method,
        source_type=candidate.source_type,
        source_name=candidate.source_name,
        video_path=candidate.video_path,
        frame_number=candidate.frame_number,
        video_fps=candidate.video_fps,
        training_datasets=candidate.training_datasets,
        uploaded_by=candidate.uploaded_by,
        detected_at=candidate.detected_at,
    )


class ViolationRecorder:
    """Insert-only writer for the violations table."""

    def __init__(self, session_maker=None):
        self.session_maker = session_maker or async_session_maker

    async def record(self, candidate: ViolationCandidate) -> int:
        """Insert one violation and return its id."""
        async with self.session_maker() as db:
            try:
                row = candidate_to_row(candidate)
                db.add(row)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.debug(f"Recorded violation {row.id}: {candidate.violation_type} at frame {candidate.frame_number}")
        return row.id
