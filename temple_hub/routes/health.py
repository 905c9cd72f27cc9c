"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from fastapi import APIRouter, HTTPException
from google.api_core.exceptions import GoogleAPICallError
from temple_hub.config.firebase import get_db
from temple_hub.core.settings import settings
from temple_hub.utils.firestore_helpers import utc_now


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
        "timestamp": utc_now().isoformat()
    }


@router.get("/db")
async def database_health():
    """
    Database connectivity check.
    Lists the top-level collections, which needs a working connection.
    """
    try:
        collections = list(get_db().collections())
    except (GoogleAPICallError, RuntimeError) as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(e)}"
        )

    return {
        "status": "healthy",
        "database": "mock" if settings.USE_MOCK_DB else "firestore",
        "connected": True,
        "collections_count": len(collections),
        "timestamp": utc_now().isoformat()
    }
