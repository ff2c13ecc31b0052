"""
Health endpoint.
No authentication required.
"""

import logging

from fastapi import APIRouter

from filestorage.dependencies import AppSettings, Storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(storage: Storage, settings: AppSettings):
    """
    Service health check endpoint.

    Returns:
        {"status": "ok"} when the storage root is reachable
        {"status": "degraded", "issues": [...]} when it is not
    """
    issues = []

    try:
        await storage.directory_exists("")
    except Exception as e:
        logger.warning(f"Storage health check failed: {e}")
        issues.append(f"Storage: {str(e)}")

    if issues:
        return {
            "status": "degraded",
            "backend": settings.STORAGE_BACKEND,
            "issues": issues,
        }

    return {
        "status": "ok",
        "backend": settings.STORAGE_BACKEND,
    }
