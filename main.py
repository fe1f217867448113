"""
Canvas++ FastAPI Application
Backend for the Canvas++ student dashboard: the canvas-data and assistant
functions plus notes, timetable and calendar export.
"""

import os
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded

from config import get_settings
from dependencies import limiter
from routers import (
    announcements,
    assignments,
    assistant,
    cache,
    calendar,
    canvas_data,
    courses,
    health,
    notes,
    timetable,
)
from services.canvas_client import CanvasApiError

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss A} | {level: <8} | {name}:{function}:{line} | {message}"

# Configure loguru for the application
logger.remove()  # Remove default handler
logger.add(
    sys.stderr,
    level=get_settings().log_level.upper(),
    format=LOG_FORMAT,
    colorize=True,
)

# Lambda has a read-only filesystem; stdout goes to CloudWatch there
if os.getenv("AWS_LAMBDA_FUNCTION_NAME") is None:
    os.makedirs("logs", exist_ok=True)
    logger.add(
        "logs/canvas-pp.log",
        level="DEBUG",
        format=LOG_FORMAT,
        rotation="1 day",
        retention="30 days",
        compression="zip",
        enqueue=True,  # Thread-safe logging
    )


async def canvas_error_handler(request: Request, exc: CanvasApiError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded for {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded. Please wait a moment before trying again."},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=CanvasApiError(code="UNKNOWN", message="An unexpected error occurred").to_dict(),
    )


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    Following best practices for application factory pattern.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Canvas LMS proxy, grounded assistant and study tools for the Canvas++ dashboard",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS middleware using settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Rate limiting for the assistant
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(CanvasApiError, canvas_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health.router)
    app.include_router(canvas_data.router)
    app.include_router(courses.router)
    app.include_router(assignments.router)
    app.include_router(announcements.router)
    app.include_router(calendar.router)
    app.include_router(cache.router)
    app.include_router(assistant.router)
    app.include_router(notes.router)
    app.include_router(timetable.router)

    return app


# Create the FastAPI application instance
app = create_application()

logger.info("Canvas++ API initialized")


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
