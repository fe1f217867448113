"""
Course endpoints.
Course lists plus the per-course assignment, announcement and calendar-export views.
"""

from typing import List

from fastapi import APIRouter, HTTPException, Response, status

from dependencies import DashboardDep
from models import Announcement, Assignment, Course
from services.ics_export import assignment_calendar, ics_filename

router = APIRouter(
    prefix="/api/courses",
    tags=["courses"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[Course])
async def list_courses(dashboard: DashboardDep) -> List[Course]:
    """Active courses with their dashboard colors."""
    return await dashboard.courses()


@router.get("/{course_id}/assignments", response_model=List[Assignment])
async def list_course_assignments(course_id: str, dashboard: DashboardDep) -> List[Assignment]:
    return await dashboard.assignments_for_course(course_id)


@router.get("/{course_id}/announcements", response_model=List[Announcement])
async def list_course_announcements(course_id: str, dashboard: DashboardDep) -> List[Announcement]:
    return await dashboard.announcements_for_course(course_id)


@router.get("/{course_id}/assignments/{assignment_id}/ics")
async def export_assignment(course_id: str, assignment_id: str, dashboard: DashboardDep) -> Response:
    """Download one assignment as an .ics file with a one-hour reminder."""
    assignments = await dashboard.assignments_for_course(course_id)
    assignment = next((a for a in assignments if a.id == assignment_id), None)
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Assignment {assignment_id} not found in course {course_id}",
        )

    return Response(
        content=assignment_calendar(assignment),
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{ics_filename(assignment.name)}"'
        },
    )
