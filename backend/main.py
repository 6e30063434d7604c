"""
MarkLens — Student Marks Analytics
FastAPI backend entry point.
"""

import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marklens.config import get_settings
from routes.upload import router as upload_router
from routes.analyze import router as analyze_router
from routes.reports import router as reports_router

# Load environment before the first get_settings() call
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

settings = get_settings()

app = FastAPI(
    title=f"{settings.app_name} API",
    description=(
        "Upload assessment marks as CSV and get subject statistics, "
        "student rankings, at-risk flags and study advice."
    ),
    version="1.0.0",
)

# CORS — allow the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(upload_router, prefix="/api/upload", tags=["Upload"])
app.include_router(analyze_router, prefix="/api/analyze", tags=["Analytics"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "app_name": settings.app_name,
    }


@app.get("/api/config")
async def get_config():
    """Return analysis thresholds and ingestion policy to the frontend."""
    return {
        "app_name": settings.app_name,
        "thresholds": settings.thresholds.as_dict(),
        "invalid_mark_policy": settings.invalid_mark_policy,
    }
