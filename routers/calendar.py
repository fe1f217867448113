"""
Calendar endpoints.
Assignment due dates as calendar events, as JSON or as an iCalendar feed.
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Query, Response

from dependencies import DashboardDep
from models import CalendarEvent
from services.dashboard import filter_assignments, sort_assignments, to_calendar_events
from services.ics_export import assignments_calendar

router = APIRouter(
    prefix="/api",
    tags=["calendar"],
)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.get("/calendar", response_model=List[CalendarEvent])
async def get_calendar(
    dashboard: DashboardDep,
    start: datetime = Query(alias="from"),
    end: datetime = Query(alias="to"),
) -> List[CalendarEvent]:
    """Assignments due between `from` and `to` as calendar events."""
    index = await dashboard.load_courses()
    assignments = filter_assignments(
        await dashboard.all_assignments(index),
        start=_as_utc(start),
        end=_as_utc(end),
    )
    return to_calendar_events(sort_assignments(assignments, "due"))


@router.get("/calendar.ics")
async def export_calendar(
    dashboard: DashboardDep,
    days: int = Query(default=7, ge=1, le=365),
    title: Optional[str] = Query(default="Canvas++ Assignments", max_length=200),
) -> Response:
    """Download the upcoming window as a single .ics file."""
    assignments = await dashboard.windowed_assignments(days)
    filename = f"canvas-assignments-{datetime.now(timezone.utc):%Y-%m-%d}.ics"
    return Response(
        content=assignments_calendar(assignments, title=title),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
