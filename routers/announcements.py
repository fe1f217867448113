"""
Announcement endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Query

from dependencies import DashboardDep
from models import Announcement

router = APIRouter(
    prefix="/api",
    tags=["announcements"],
)


@router.get("/announcements", response_model=List[Announcement])
async def get_announcements(
    dashboard: DashboardDep,
    days: int = Query(default=14, ge=1, le=365),
    course_id: Optional[str] = Query(default=None, alias="courseId"),
) -> List[Announcement]:
    """
    Announcements posted in the last `days` days, newest data from Canvas.

    - **courseId**: restrict to one course
    """
    announcements = await dashboard.announcements_since(days)
    if course_id:
        announcements = [a for a in announcements if a.course_id == str(course_id)]
    return announcements
