"""
Health check endpoint.
"""

from datetime import datetime

from fastapi import APIRouter, Request

from .common import get_engine

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    engine = get_engine(request)
    return {
        "status": "ok",
        "timestamp": datetime.now().isoformat(),
        "streams": engine.list_active_jobs(),
    }
