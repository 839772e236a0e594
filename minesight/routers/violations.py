"""
Violation listing, export and click-through endpoints.
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import Optional

from minesight.database import get_db
from minesight.models import Violation
from minesight.schemas.violation import (
    JumpTarget, Severity, ViolationResponse, ViolationListResponse
)
from minesight.services.export_service import violations_to_csv
from minesight.services.storage import LocalObjectStorage
from minesight.config import settings

router = APIRouter()


def _conditions(
    violation_type: Optional[str],
    severity: Optional[Severity],
    detection_method: Optional[str],
    video_path: Optional[str],
    uploaded_by: Optional[str],
    min_confidence: Optional[float],
) -> list:
    conditions = []
    if violation_type:
        conditions.append(Violation.violation_type == violation_type)
    if severity:
        conditions.append(Violation.severity == severity.value)
    if detection_method:
        conditions.append(Violation.detection_method == detection_method)
    if video_path:
        conditions.append(Violation.video_path == video_path)
    if uploaded_by:
        conditions.append(Violation.uploaded_by == uploaded_by)
    if min_confidence is not None:
        conditions.append(Violation.confidence >= min_confidence)
    return conditions


async def _get_or_404(db: AsyncSession, violation_id: int) -> Violation:
    violation = await db.get(Violation, violation_id)
    if violation is None:
        raise HTTPException(status_code=404, detail="Violation not found")
    return violation


@router.get("", response_model=ViolationListResponse)
async def list_violations(
    page: int = 1,
    page_size: int = 20,
    violation_type: Optional[str] = None,
    severity: Optional[Severity] = None,
    detection_method: Optional[str] = None,
    video_path: Optional[str] = None,
    uploaded_by: Optional[str] = None,
    min_confidence: Optional[float] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    List violations, newest first.

    Filters:
    - violation_type, severity (critical/warning), detection_method
    - video_path: storage key of the source video
    - uploaded_by, min_confidence
    """
    conditions = _conditions(
        violation_type, severity, detection_method, video_path, uploaded_by, min_confidence
    )

    query = select(Violation)
    count_query = select(func.count()).select_from(Violation)
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar()

    query = query.order_by(Violation.detected_at.desc(), Violation.id.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    violations = (await db.execute(query)).scalars().all()

    return ViolationListResponse(
        items=[ViolationResponse.model_validate(v) for v in violations],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/types/list")
async def get_violation_types(
    db: AsyncSession = Depends(get_db)
):
    """Get list of all recorded violation types."""
    result = await db.execute(
        select(Violation.violation_type).distinct().order_by(Violation.violation_type)
    )
    types = [row[0] for row in result.all()]

    return {"violation_types": types}


@router.get("/export")
async def export_violations(
    violation_type: Optional[str] = None,
    severity: Optional[Severity] = None,
    detection_method: Optional[str] = None,
    video_path: Optional[str] = None,
    uploaded_by: Optional[str] = None,
    min_confidence: Optional[float] = None,
    db: AsyncSession = Depends(get_db)
):
    """Download the (filtered) violation log as CSV."""
    conditions = _conditions(
        violation_type, severity, detection_method, video_path, uploaded_by, min_confidence
    )
    query = select(Violation)
    if conditions:
        query = query.where(and_(*conditions))
    query = query.order_by(Violation.detected_at.desc(), Violation.id.desc())

    violations = (await db.execute(query)).scalars().all()

    return Response(
        content=violations_to_csv(violations),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=violation_logs.csv"},
    )


@router.get("/{violation_id}", response_model=ViolationResponse)
async def get_violation(
    violation_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get violation details by ID."""
    return ViolationResponse.model_validate(await _get_or_404(db, violation_id))


@router.get("/{violation_id}/jump", response_model=JumpTarget)
async def jump_to_violation(
    violation_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Where to seek the player for a violation.

    Seconds are frame_number / fps with the fixed 30 FPS assumption.
    """
    violation = await _get_or_404(db, violation_id)

    video_url = None
    if violation.video_path:
        video_url = LocalObjectStorage().public_url(settings.VIDEO_BUCKET, violation.video_path)

    fps = violation.video_fps or settings.VIDEO_FPS
    return JumpTarget(
        violation_id=violation.id,
        video_path=violation.video_path,
        video_url=video_url,
        frame_number=violation.frame_number,
        seconds=violation.frame_number / fps,
    )
