"""
Pydantic models for request/response validation.
Transport records mirror the Canvas data the dashboard renders.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


AssignmentStatus = Literal["overdue", "due_today", "due_soon", "future"]
SubmissionState = Literal["not_submitted", "submitted", "missing", "graded"]
NoteCategory = Literal["todo", "in_progress", "done"]
AssistantRange = Literal["today", "week", "month"]


# Canvas transport records
class Course(BaseModel):
    """Active Canvas course with its dashboard color."""

    id: str
    name: str
    course_code: Optional[str] = None
    color: str
    html_url: str


class Assignment(BaseModel):
    """Canvas assignment with derived due status and submission state."""

    id: str
    name: str
    course_id: str
    course_name: str
    course_color: Optional[str] = None
    due_at: str
    points_possible: Optional[float] = None
    status: AssignmentStatus
    submission_state: SubmissionState
    html_url: Optional[str] = None
    description: Optional[str] = None


class Announcement(BaseModel):
    """Course announcement with a plain-text preview."""

    id: str
    title: str
    course_id: str
    course_name: str
    course_color: Optional[str] = None
    posted_at: str
    message_preview: str
    html_url: Optional[str] = None


class CalendarEvent(BaseModel):
    """Calendar entry derived from an assignment due date."""

    id: str
    title: str
    start_at: str
    end_at: Optional[str] = None
    type: Literal["assignment", "event"] = "assignment"
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    course_color: Optional[str] = None
    html_url: Optional[str] = None


class UpcomingResponse(BaseModel):
    """Windowed assignments grouped by due status."""

    overdue: List[Assignment] = []
    due_today: List[Assignment] = []
    due_soon: List[Assignment] = []
    this_week: List[Assignment] = []


# Assistant models
class AssistantContext(BaseModel):
    range: Optional[AssistantRange] = None
    course_id: Optional[str] = Field(default=None, alias="courseId")

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class Citation(BaseModel):
    """Canvas item referenced by an assistant answer."""

    type: Literal["assignment", "announcement", "course"]
    id: str
    title: str
    html_url: Optional[str] = None


class AssistantResponse(BaseModel):
    answer: str
    citations: List[Citation]


class SummaryRequest(BaseModel):
    description: str = Field(min_length=1)
    assignment_name: str = Field(alias="assignmentName")

    model_config = ConfigDict(populate_by_name=True)


class SummaryResponse(BaseModel):
    summary: str


# Notes models
class StickyNote(BaseModel):
    """Sticky note stored in the notes table."""

    id: str
    title: str = ""
    content: str = ""
    color: str
    category: NoteCategory = "todo"
    position_x: float = 0.0
    position_y: float = 0.0
    created_at: str
    updated_at: str


class NoteCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    color: Optional[str] = None
    category: Optional[NoteCategory] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None


class NoteUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    color: Optional[str] = None
    category: Optional[NoteCategory] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None


# Timetable models
class TimetableEntry(BaseModel):
    day: str
    period: str
    start: str
    subject: str
    course: str
    teacher: str
    room: str
    color: Optional[str] = None


class PeriodTime(BaseModel):
    start: str
    end: str


class TimetableWeekResponse(BaseModel):
    days: Dict[str, List[TimetableEntry]]
    period_times: Dict[str, PeriodTime]


class TimetableTodayResponse(BaseModel):
    day: Optional[str] = None
    schedule: List[TimetableEntry]
    current_period: Optional[TimetableEntry] = None
    next_period: Optional[TimetableEntry] = None


# Response Models
class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool = True
    status: str
    timestamp: str
    version: str
    canvas_api_version: str
    canvas_configured: bool
    assistant_configured: bool


# Error Models
class ErrorResponse(BaseModel):
    """Standard error response returned by the canvas-data function."""

    code: str
    message: str
    hint: Optional[str] = None
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")

    model_config = ConfigDict(populate_by_name=True)


class AssistantErrorResponse(BaseModel):
    error: str
