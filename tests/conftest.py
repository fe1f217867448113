"""Shared fixtures: a fake Canvas gateway, test settings and an app client."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from config import Settings, get_settings
from dependencies import get_notes_store, get_optional_gateway, limiter
from services.assistant import _summary_cache
from services.cache import clear_all_caches
from services.canvas_client import CanvasApiError, rate_limit_gate
from services.notes_store import NotesStore
from services.status import course_id_from_context

CANVAS_URL = "https://canvas.test"


def iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_course(course_id: int, name: str, code: str) -> SimpleNamespace:
    return SimpleNamespace(id=course_id, name=name, course_code=code)


def make_assignment(
    assignment_id: int,
    name: str,
    due_at: Optional[str],
    points: Optional[float] = 10,
    submission: Optional[Dict[str, Any]] = None,
    description: Optional[str] = None,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=assignment_id,
        name=name,
        due_at=due_at,
        points_possible=points,
        html_url=f"{CANVAS_URL}/assignments/{assignment_id}",
        description=description,
        submission=submission or {},
    )


def make_announcement(
    announcement_id: int, course_id: int, title: str, posted_at: str, message: str
) -> SimpleNamespace:
    return SimpleNamespace(
        id=announcement_id,
        title=title,
        context_code=f"course_{course_id}",
        posted_at=posted_at,
        message=message,
        html_url=f"{CANVAS_URL}/courses/{course_id}/discussion_topics/{announcement_id}",
    )


class FakeGateway:
    """Stands in for CanvasGateway; serves canned canvasapi-shaped objects."""

    base_url = CANVAS_URL

    def __init__(
        self,
        courses: List[Any],
        assignments: Dict[int, List[Any]],
        announcements: List[Any],
        failing_courses: tuple = (),
    ) -> None:
        self.courses = courses
        self.assignments = assignments
        self.announcements = announcements
        self.failing_courses = failing_courses
        self.calls: Dict[str, int] = {"courses": 0, "assignments": 0, "announcements": 0}
        self.announcement_requests: List[tuple] = []

    def course_url(self, course_id: Any) -> str:
        return f"{self.base_url}/courses/{course_id}"

    def get_courses(self) -> List[Any]:
        self.calls["courses"] += 1
        return list(self.courses)

    def get_assignments(self, course: Any) -> List[Any]:
        self.calls["assignments"] += 1
        if course.id in self.failing_courses:
            raise CanvasApiError(code="CANVAS_ERROR", message="Canvas API error: 500")
        return list(self.assignments.get(course.id, []))

    def get_announcements(self, course_ids: List[Any], start_date: Optional[str] = None) -> List[Any]:
        self.calls["announcements"] += 1
        self.announcement_requests.append((list(course_ids), start_date))
        return [
            a
            for a in self.announcements
            if course_id_from_context(a.context_code) in course_ids
        ]


@pytest.fixture()
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture()
def gateway(now: datetime) -> FakeGateway:
    """
    Two courses:
      101 Calculus II  - 1001 overdue & missing, 1002 submitted in 5 days,
                         1003 undated, 1004 due in 20 days
      202 CS-101       - 2001 graded in 10 days, 2002 due 40 days ago
    """
    courses = [
        make_course(101, "Calculus II", "MATH-152"),
        make_course(202, "Computer Science 101", "CS-101"),
    ]
    assignments = {
        101: [
            make_assignment(1001, "Integration Problem Set", iso(now - timedelta(days=2)), points=25),
            make_assignment(
                1002,
                "Series Quiz",
                iso(now + timedelta(days=5)),
                submission={"submitted_at": iso(now - timedelta(hours=1)), "grade": None},
            ),
            make_assignment(1003, "Undated Reading", None),
            make_assignment(1004, "Final Project", iso(now + timedelta(days=20)), points=100),
        ],
        202: [
            make_assignment(
                2001,
                "Python Functions Lab",
                iso(now + timedelta(days=10)),
                points=20,
                submission={"submitted_at": iso(now - timedelta(days=1)), "grade": "A"},
                description="<p>Write three functions.</p>",
            ),
            make_assignment(2002, "Old Essay", iso(now - timedelta(days=40))),
        ],
    }
    announcements = [
        make_announcement(
            5001, 101, "Midterm moved", iso(now - timedelta(days=1)),
            "<p>The midterm is now on Friday.</p>",
        ),
        make_announcement(
            5002, 202, "Lab closed", iso(now - timedelta(days=10)), "<p>No lab this week.</p>"
        ),
    ]
    return FakeGateway(courses, assignments, announcements)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        canvas_api_url=CANVAS_URL,
        canvas_api_token="test-token",
        openai_api_key="sk-test-fake-key",
        notes_file=str(tmp_path / "notes.json"),
        s3_bucket_name="",
        timezone="UTC",
    )


@pytest.fixture(autouse=True)
def reset_state():
    clear_all_caches()
    rate_limit_gate.reset()
    limiter.reset()
    _summary_cache.clear()
    yield
    clear_all_caches()
    rate_limit_gate.reset()


@pytest.fixture()
def app(settings, gateway, tmp_path):
    from main import app as application

    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_optional_gateway] = lambda: gateway
    application.dependency_overrides[get_notes_store] = lambda: NotesStore(
        local_path=str(tmp_path / "notes.json")
    )
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    """Async httpx client bound to the FastAPI app with a fake Canvas."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
