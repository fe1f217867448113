"""
canvas-data function.
A single endpoint that dispatches on ?endpoint= the way the dashboard's
serverless data proxy is called.
"""

from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, status
from loguru import logger

from dependencies import DashboardDep
from models import ErrorResponse

router = APIRouter(
    prefix="/api",
    tags=["canvas-data"],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)

Endpoint = Literal[
    "courses",
    "course_assignments",
    "course_announcements",
    "announcements",
    "assignments",
    "upcoming",
]

COURSE_SCOPED = ("course_assignments", "course_announcements")


@router.get("/canvas-data", response_model=None)
async def canvas_data(
    dashboard: DashboardDep,
    endpoint: Endpoint = "upcoming",
    days: int = Query(default=14, ge=1, le=365),
    course_id: Optional[str] = Query(default=None, alias="courseId"),
) -> Any:
    """
    Proxy Canvas data for the dashboard.

    - **endpoint**: courses, course_assignments, course_announcements,
      announcements, assignments or upcoming (default)
    - **days**: look-ahead for assignments, look-back for announcements
    - **courseId**: required by the course_* endpoints
    """
    logger.info(f"Processing request: endpoint={endpoint}, days={days}, courseId={course_id}")

    if endpoint in COURSE_SCOPED and not course_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"courseId is required for endpoint {endpoint}",
        )

    if endpoint == "courses":
        return await dashboard.courses()
    if endpoint == "course_assignments":
        return await dashboard.assignments_for_course(course_id)
    if endpoint == "course_announcements":
        return await dashboard.announcements_for_course(course_id)
    if endpoint == "announcements":
        return await dashboard.announcements_since(days)
    if endpoint == "assignments":
        return await dashboard.windowed_assignments(days)
    return await dashboard.upcoming(days)
