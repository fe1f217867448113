"""
Cache management endpoints.
The dashboard's refresh button drops cached Canvas data so the next request refetches it.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter
from loguru import logger

from dependencies import SettingsDep
from services.cache import clear_all_caches, get_cache_stats

router = APIRouter(
    prefix="/api",
    tags=["cache"],
)


@router.post("/refresh")
async def refresh() -> Dict[str, Any]:
    """Drop cached courses, assignments and announcements."""
    stats = clear_all_caches()
    logger.info(f"Caches cleared on refresh: {stats['total_cleared']} entries")
    return {
        "message": "Cache cleared successfully",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "statistics": stats,
    }


@router.post("/cache/clear")
async def clear_cache() -> Dict[str, Any]:
    return await refresh()


@router.get("/cache/stats")
async def get_cache_statistics(settings: SettingsDep) -> Dict[str, Any]:
    """
    Get cache statistics for monitoring and debugging.
    """
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "caching_enabled": settings.enable_caching,
        "ttl_settings": {
            "courses": settings.courses_cache_ttl,
            "assignments": settings.assignments_cache_ttl,
            "announcements": settings.announcements_cache_ttl,
        },
        "cache_stats": get_cache_stats(
            settings.courses_cache_ttl,
            settings.assignments_cache_ttl,
            settings.announcements_cache_ttl,
        ),
    }
