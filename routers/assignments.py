"""
Assignment endpoints.
Windowed assignment listings with the filters the dashboard pages use.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import APIRouter, Query

from dependencies import DashboardDep
from models import Assignment, UpcomingResponse
from services.dashboard import filter_assignments, sort_assignments

router = APIRouter(
    prefix="/api",
    tags=["assignments"],
    responses={404: {"description": "Not found"}},
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@router.get("/upcoming", response_model=UpcomingResponse)
async def get_upcoming(
    dashboard: DashboardDep,
    days: int = Query(default=14, ge=1, le=365),
) -> UpcomingResponse:
    """
    Assignments due in the window grouped into overdue, due_today, due_soon and this_week.

    - **days**: how far ahead to look (overdue work from the last 30 days is always included)
    """
    return await dashboard.upcoming(days)


@router.get("/assignments", response_model=List[Assignment])
async def get_assignments(
    dashboard: DashboardDep,
    days: int = Query(default=14, ge=1, le=365),
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    state: Optional[Literal["all", "not_submitted", "submitted", "missing", "graded"]] = Query(
        default=None, alias="status"
    ),
    course_id: Optional[str] = Query(default=None, alias="courseId"),
    q: Optional[str] = None,
    sort: Optional[Literal["due", "name", "course", "points"]] = None,
) -> List[Assignment]:
    """
    Assignments in the window, optionally filtered.

    - **from** / **to**: due date bounds (ISO 8601)
    - **status**: submission state, or `all`
    - **courseId**: restrict to one course
    - **q**: case-insensitive name search
    - **sort**: due (default), name, course or points
    """
    assignments = await dashboard.windowed_assignments(days)
    filtered = filter_assignments(
        assignments,
        start=_as_utc(start),
        end=_as_utc(end),
        submission_state=state,
        course_id=course_id,
        query=q,
    )
    return sort_assignments(filtered, sort)
