"""
Model and dataset upload endpoints.

Uploaded dataset names shape the training context of later analysis runs.
"""

from fastapi import APIRouter, UploadFile, File, HTTPException, Depends, Form
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from typing import Optional

from minesight.database import get_db
from minesight.models import TrainingAsset
from minesight.models.training_asset import AssetType
from minesight.schemas.training_asset import TrainingAssetResponse, TrainingAssetListResponse
from minesight.services.storage import (
    LocalObjectStorage, StorageError, build_storage_key, sanitize_filename
)
from minesight.config import settings

router = APIRouter()


@router.post("", response_model=TrainingAssetResponse)
async def upload_asset(
    file: UploadFile = File(...),
    type: AssetType = Form(...),
    user_id: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload model weights or a labelled dataset.

    Dataset names are matched against known categories (drill handling,
    cylinders, LH machines, oil spray, ...) when videos are analysed.
    """
    sanitized = sanitize_filename(file.filename)
    if not sanitized:
        raise HTTPException(status_code=400, detail="Invalid filename")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(content) > settings.MAX_MODEL_SIZE:
        limit_mb = settings.MAX_MODEL_SIZE // (1024 * 1024)
        raise HTTPException(status_code=400, detail=f"File size exceeds {limit_mb}MB limit")

    storage = LocalObjectStorage()
    key = build_storage_key(f"{type.value}_{sanitized}")
    try:
        await storage.put(settings.MODEL_BUCKET, key, content, file.content_type)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save file: {e}")

    asset = TrainingAsset(
        name=file.filename,
        file_path=key,
        type=type.value,
        file_size=len(content),
        mime_type=file.content_type,
        uploaded_by=user_id,
    )
    db.add(asset)
    await db.commit()
    await db.refresh(asset)

    return TrainingAssetResponse.model_validate(asset)


@router.get("", response_model=TrainingAssetListResponse)
async def list_assets(
    uploaded_by: Optional[str] = None,
    type: Optional[AssetType] = None,
    db: AsyncSession = Depends(get_db)
):
    """List uploaded models and datasets, newest first."""
    query = select(TrainingAsset)
    if uploaded_by:
        query = query.where(TrainingAsset.uploaded_by == uploaded_by)
    if type:
        query = query.where(TrainingAsset.type == type.value)
    query = query.order_by(TrainingAsset.created_at.desc())

    assets = (await db.execute(query)).scalars().all()

    return TrainingAssetListResponse(
        items=[TrainingAssetResponse.model_validate(a) for a in assets],
        total=len(assets),
    )


@router.post("/{asset_id}/activate", response_model=TrainingAssetResponse)
async def activate_model(
    asset_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Make an uploaded model the active one.

    Every other model is deactivated; the active model's weights are used by
    the geometric detector when no YOLO_MODEL_PATHS are configured.
    """
    asset = await db.get(TrainingAsset, asset_id)
    if asset is None:
        raise HTTPException(status_code=404, detail="Model not found")
    if asset.type != AssetType.MODEL.value:
        raise HTTPException(status_code=400, detail="Only models can be activated")

    await db.execute(
        update(TrainingAsset)
        .where(TrainingAsset.type == AssetType.MODEL.value)
        .where(TrainingAsset.id != asset_id)
        .values(is_active=False)
    )
    asset.is_active = True
    await db.commit()
    await db.refresh(asset)

    return TrainingAssetResponse.model_validate(asset)
