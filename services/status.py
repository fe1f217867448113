"""
Assignment status and submission-state derivation.

These rules are shared by the canvas-data endpoints and the assistant, so both
present the same picture of what is overdue, due today, or still missing.
"""

import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from models import Announcement, Assignment, UpcomingResponse

COURSE_COLORS = [
    "#4DA3FF",
    "#10B981",
    "#F59E0B",
    "#8B5CF6",
    "#EF4444",
    "#EC4899",
    "#06B6D4",
    "#84CC16",
    "#F97316",
    "#6366F1",
]
FALLBACK_COLOR = "#6366F1"

PAST_WINDOW_DAYS = 30
PREVIEW_LENGTH = 150

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")


def course_color(index: int) -> str:
    return COURSE_COLORS[index % len(COURSE_COLORS)]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a Canvas ISO-8601 timestamp into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def derive_status(due_at: datetime, now: datetime, local_tz: tzinfo = timezone.utc) -> str:
    """
    Classify a due date relative to now.

    overdue   - already past
    due_today - within 24 hours and on the same local calendar day
    due_soon  - within 48 hours
    future    - anything later
    """
    diff = due_at - now
    diff_hours = diff.total_seconds() / 3600

    if diff.total_seconds() < 0:
        return "overdue"
    if diff_hours <= 24 and due_at.astimezone(local_tz).date() == now.astimezone(local_tz).date():
        return "due_today"
    if diff_hours <= 48:
        return "due_soon"
    return "future"


def derive_submission_state(submission: Optional[Dict[str, Any]], status: str) -> str:
    """A grade wins over a submission time; unsubmitted overdue work is missing."""
    submission = submission or {}
    if submission.get("grade") is not None:
        return "graded"
    if submission.get("submitted_at"):
        return "submitted"
    if status == "overdue":
        return "missing"
    return "not_submitted"


def _submission_dict(raw: Any) -> Dict[str, Any]:
    submission = getattr(raw, "submission", None)
    if submission is None:
        return {}
    if isinstance(submission, dict):
        return submission
    return vars(submission)


def format_assignment(
    raw: Any,
    course: Any,
    color: str,
    now: datetime,
    local_tz: tzinfo = timezone.utc,
) -> Optional[Assignment]:
    """Convert a canvasapi assignment into the dashboard record, or None when undated."""
    due_at = getattr(raw, "due_at", None)
    due_date = parse_timestamp(due_at)
    if due_date is None:
        return None

    status = derive_status(due_date, now, local_tz)
    points = getattr(raw, "points_possible", None)

    return Assignment(
        id=str(raw.id),
        name=raw.name,
        course_id=str(course.id),
        course_name=course.name,
        course_color=color,
        due_at=due_at,
        points_possible=points,
        status=status,
        submission_state=derive_submission_state(_submission_dict(raw), status),
        html_url=getattr(raw, "html_url", None),
        description=getattr(raw, "description", None),
    )


def filter_window(
    assignments: Iterable[Assignment],
    now: datetime,
    days: int,
    past_days: int = PAST_WINDOW_DAYS,
) -> List[Assignment]:
    """Keep assignments due between past_days ago and days ahead, earliest first."""
    past_limit = now - timedelta(days=past_days)
    future_limit = now + timedelta(days=days)

    relevant = [
        a
        for a in assignments
        if past_limit <= parse_timestamp(a.due_at) <= future_limit
    ]
    relevant.sort(key=lambda a: parse_timestamp(a.due_at))
    return relevant


def group_upcoming(assignments: Iterable[Assignment]) -> UpcomingResponse:
    grouped: Dict[str, List[Assignment]] = {
        "overdue": [],
        "due_today": [],
        "due_soon": [],
        "this_week": [],
    }
    for assignment in assignments:
        key = "this_week" if assignment.status == "future" else assignment.status
        grouped[key].append(assignment)
    return UpcomingResponse(**grouped)


def message_preview(message: Optional[str], limit: int = PREVIEW_LENGTH) -> str:
    """Strip markup from an announcement body and cut it to a short preview."""
    plain = _SPACE_RE.sub(" ", _TAG_RE.sub(" ", message or "")).strip()
    if len(plain) > limit:
        return plain[: limit - 3] + "..."
    return plain


def course_id_from_context(context_code: Optional[str]) -> Optional[int]:
    if not context_code:
        return None
    try:
        return int(context_code.replace("course_", ""))
    except ValueError:
        return None


def format_announcement(
    raw: Any,
    courses_by_id: Dict[int, Any],
    colors_by_id: Dict[int, str],
) -> Announcement:
    course_id = course_id_from_context(getattr(raw, "context_code", None))
    course = courses_by_id.get(course_id)

    return Announcement(
        id=str(raw.id),
        title=getattr(raw, "title", "") or "",
        course_id=str(course_id) if course_id is not None else "",
        course_name=course.name if course is not None else "Unknown Course",
        course_color=colors_by_id.get(course_id, FALLBACK_COLOR),
        posted_at=getattr(raw, "posted_at", None) or "",
        message_preview=message_preview(getattr(raw, "message", None)),
        html_url=getattr(raw, "html_url", None),
    )


def posted_since(announcements: Iterable[Announcement], cutoff: datetime) -> List[Announcement]:
    return [
        a
        for a in announcements
        if a.posted_at and parse_timestamp(a.posted_at) >= cutoff
    ]
