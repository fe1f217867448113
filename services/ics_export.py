"""
iCalendar export of assignment due dates.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from icalendar import Alarm, Calendar, Event

from models import Assignment
from services.status import parse_timestamp

EVENT_DURATION = timedelta(hours=1)
DESCRIPTION_LIMIT = 500


def generate_uid(assignment_id: str) -> str:
    return f"{assignment_id}@canvas-pp"


def _new_calendar(prodid: str, title: Optional[str] = None) -> Calendar:
    cal = Calendar()
    cal.add("prodid", prodid)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    if title:
        cal.add("x-wr-calname", title)
    return cal


def _describe(assignment: Assignment, include_description: bool) -> str:
    description = f"Course: {assignment.course_name}"
    if assignment.points_possible:
        description += f"\nPoints: {assignment.points_possible:g}"
    if include_description and assignment.description:
        description += f"\n\n{assignment.description[:DESCRIPTION_LIMIT]}"
    return description


def assignment_event(
    assignment: Assignment,
    stamp: datetime,
    include_description: bool = False,
    with_alarm: bool = False,
) -> Event:
    due = parse_timestamp(assignment.due_at)

    event = Event()
    event.add("uid", generate_uid(assignment.id))
    event.add("dtstamp", stamp)
    event.add("dtstart", due)
    event.add("dtend", due + EVENT_DURATION)
    event.add("summary", assignment.name)
    event.add("description", _describe(assignment, include_description))
    if assignment.html_url:
        event.add("url", assignment.html_url)
    event.add("categories", [assignment.course_name])
    event.add("status", "CONFIRMED")

    if with_alarm:
        alarm = Alarm()
        alarm.add("trigger", -EVENT_DURATION)
        alarm.add("action", "DISPLAY")
        alarm.add("description", f"{assignment.name} is due in 1 hour")
        event.add_component(alarm)

    return event


def assignment_calendar(assignment: Assignment, now: Optional[datetime] = None) -> bytes:
    """Single assignment with a one-hour reminder."""
    stamp = now or datetime.now(timezone.utc)
    cal = _new_calendar("-//Canvas++//Assignment//EN")
    cal.add_component(
        assignment_event(assignment, stamp, include_description=True, with_alarm=True)
    )
    return cal.to_ical()


def assignments_calendar(
    assignments: Iterable[Assignment],
    title: Optional[str] = "Canvas++ Assignments",
    now: Optional[datetime] = None,
) -> bytes:
    stamp = now or datetime.now(timezone.utc)
    cal = _new_calendar("-//Canvas++//Assignments//EN", title)
    for assignment in assignments:
        cal.add_component(assignment_event(assignment, stamp))
    return cal.to_ical()


def ics_filename(name: str) -> str:
    slug = "".join(c if c.isascii() and c.isalnum() else "-" for c in name).lower()
    return f"{slug}.ics"
