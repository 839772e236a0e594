"""
MineSight - Mining Safety Violation Analysis
Main FastAPI Application Entry Point
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import logging
import os

from minesight.database import init_db, dispose_db
from minesight.routers import videos, violations, training_assets
from minesight.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# Create storage directories immediately on import (before app starts)
os.makedirs(os.path.join(settings.STORAGE_DIR, settings.VIDEO_BUCKET), exist_ok=True)
os.makedirs(os.path.join(settings.STORAGE_DIR, settings.MODEL_BUCKET), exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    await init_db()

    yield

    await dispose_db()


app = FastAPI(
    title="MineSight",
    description="Mining safety video analysis: filename hints, frame classification and violation logs",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://localhost:8080"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(videos.router, prefix="/api/videos", tags=["Videos"])
app.include_router(violations.router, prefix="/api/violations", tags=["Violations"])
app.include_router(training_assets.router, prefix="/api/models", tags=["Models"])

# Serve stored objects (videos are public so the player can seek them)
app.mount("/storage", StaticFiles(directory=settings.STORAGE_DIR), name="storage")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "running",
        "message": "MineSight API",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": "connected",
        "classifier": "configured" if settings.ANTHROPIC_API_KEY else "disabled",
        "detection_strategy": settings.DETECTION_STRATEGY,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
