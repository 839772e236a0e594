"""
Video upload, analysis and listing endpoints.
"""

from fastapi import APIRouter, UploadFile, File, HTTPException, Depends, Form
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List, Optional
import logging

from minesight.database import get_db
from minesight.models import UploadedVideo, Violation
from minesight.schemas.video import (
    AnalyzeResponse, AnalyzeErrorResponse, VideoResponse, VideoListResponse
)
from minesight.services.analysis_service import (
    AnalysisService, InvalidUploadError, VideoUpload, get_analysis_service, parse_client_frames
)
from minesight.services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=AnalyzeErrorResponse(error=message).model_dump(),
    )


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={400: {"model": AnalyzeErrorResponse}, 500: {"model": AnalyzeErrorResponse}},
)
async def analyze_video(
    video: Optional[UploadFile] = File(None),
    video_name: Optional[str] = Form(None),
    user_id: Optional[str] = Form(None),
    frames_meta: Optional[str] = Form(None),
    frames: Optional[List[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Upload a video and analyse it for safety violations.

    - A filename like `No_Helmet_at_00_00_05.mp4` is taken as ground truth
    - Otherwise frames (client-sampled `frames` + `frames_meta`, or sampled
      server-side) are classified one by one
    """
    if video is None:
        return _error(400, "Invalid file upload")

    data = await video.read()
    images = [await frame.read() for frame in (frames or [])]

    upload = VideoUpload(
        video_name=video_name or video.filename,
        content_type=video.content_type,
        data=data,
        uploaded_by=user_id,
        frames=parse_client_frames(images, frames_meta),
    )

    try:
        result = await service.analyze(db, upload)
    except InvalidUploadError as e:
        logger.warning(f"Rejected upload {upload.video_name!r}: {e}")
        return _error(400, str(e))
    except StorageError as e:
        logger.error(f"Error uploading video: {e}")
        return _error(500, str(e))

    return AnalyzeResponse(
        success=True,
        violations=len(result.violations),
        details=[v.to_dict() for v in result.violations],
    )


@router.get("", response_model=VideoListResponse)
async def list_videos(
    page: int = 1,
    page_size: int = 10,
    uploaded_by: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """List stored videos with pagination."""
    query = select(UploadedVideo)
    count_query = select(func.count()).select_from(UploadedVideo)
    if uploaded_by:
        query = query.where(UploadedVideo.uploaded_by == uploaded_by)
        count_query = count_query.where(UploadedVideo.uploaded_by == uploaded_by)

    total = (await db.execute(count_query)).scalar()

    query = query.order_by(UploadedVideo.uploaded_at.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    videos = (await db.execute(query)).scalars().all()

    items = []
    for video in videos:
        items.append(await _video_response(db, video))

    return VideoListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get stored video details by ID."""
    result = await db.execute(
        select(UploadedVideo).where(UploadedVideo.id == video_id)
    )
    video = result.scalar_one_or_none()

    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    return await _video_response(db, video)


async def _video_response(db: AsyncSession, video: UploadedVideo) -> VideoResponse:
    viol_query = select(func.count()).select_from(Violation).where(
        Violation.video_path == video.storage_key
    )
    total_violations = (await db.execute(viol_query)).scalar() or 0

    response = VideoResponse.model_validate(video)
    response.total_violations = total_violations
    return response
