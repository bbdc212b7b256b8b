"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone

from civichub.core.deps import get_firestore
from civichub.core.settings import settings


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/db")
async def database_health(db=Depends(get_firestore)):
    """
    Database connectivity check.
    Lists collections, which needs a working connection but no data.
    """
    try:
        collections = list(db.collections())
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(e)}"
        )

    return {
        "status": "healthy",
        "database": "firestore",
        "connected": True,
        "collections_count": len(collections),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
