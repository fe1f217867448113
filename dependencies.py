"""
FastAPI dependency functions.
Provides the Canvas gateway, thread pool, notes store and rate limiter shared by the routers.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Annotated, Optional

from fastapi import Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import Settings, get_settings
from services.assistant import LLMClient
from services.canvas_client import CanvasGateway, not_configured_error
from services.dashboard import DashboardService
from services.notes_store import NotesStore

# Thread pool executor for blocking Canvas API calls
thread_pool_executor = None

_notes_store = None


def get_thread_pool(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ThreadPoolExecutor:
    """
    Get or create a thread pool executor for Canvas API calls.
    Uses settings-based configuration for max workers.
    """
    global thread_pool_executor
    if thread_pool_executor is None:
        thread_pool_executor = ThreadPoolExecutor(
            max_workers=settings.thread_pool_max_workers
        )
    return thread_pool_executor


def get_optional_gateway(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Optional[CanvasGateway]:
    """Canvas gateway from configured credentials, or None when they are missing."""
    if not settings.canvas_configured:
        return None
    return CanvasGateway(settings.canvas_api_url, settings.canvas_api_token)


def get_canvas_gateway(
    gateway: Annotated[Optional[CanvasGateway], Depends(get_optional_gateway)],
) -> CanvasGateway:
    """
    Canvas gateway for the data endpoints.

    Raises:
        CanvasApiError: NOT_CONFIGURED when the URL or token is missing
    """
    if gateway is None:
        raise not_configured_error()
    return gateway


def get_dashboard_service(
    gateway: Annotated[CanvasGateway, Depends(get_canvas_gateway)],
    thread_pool: Annotated[ThreadPoolExecutor, Depends(get_thread_pool)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> DashboardService:
    return DashboardService(gateway, thread_pool, settings)


def get_notes_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> NotesStore:
    """Notes live in S3 when a bucket is configured, otherwise in a local JSON file."""
    global _notes_store
    if _notes_store is None:
        _notes_store = NotesStore(
            bucket=settings.s3_bucket_name,
            key=settings.notes_key,
            local_path=settings.notes_file,
        )
    return _notes_store


def get_llm_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> LLMClient:
    return LLMClient(settings)


def get_client_ip(request: Request) -> str:
    """Rate-limit key: first forwarded address, then the CDN header, then the peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip
    return get_remote_address(request) or "unknown"


limiter = Limiter(key_func=get_client_ip)


# Type aliases for cleaner dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
ThreadPoolDep = Annotated[ThreadPoolExecutor, Depends(get_thread_pool)]
GatewayDep = Annotated[CanvasGateway, Depends(get_canvas_gateway)]
DashboardDep = Annotated[DashboardService, Depends(get_dashboard_service)]
NotesStoreDep = Annotated[NotesStore, Depends(get_notes_store)]
OptionalGatewayDep = Annotated[Optional[CanvasGateway], Depends(get_optional_gateway)]
LLMClientDep = Annotated[LLMClient, Depends(get_llm_client)]
