"""
Canvas data aggregation for the dashboard.
Fetches courses, assignments and announcements concurrently through the
gateway and caches the formatted results between invocations.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from config import Settings
from models import Announcement, Assignment, CalendarEvent, Course, UpcomingResponse
from services.cache import (
    announcements_cache,
    assignments_cache,
    courses_cache,
    generate_cache_key,
)
from services.canvas_client import CanvasApiError, CanvasGateway
from services.status import (
    FALLBACK_COLOR,
    course_color,
    filter_window,
    format_announcement,
    format_assignment,
    group_upcoming,
    parse_timestamp,
    posted_since,
)

logger = logger.bind(module="dashboard")


@dataclass
class CourseIndex:
    """Raw canvasapi courses plus the formatted records and their colors."""

    raw: List[Any]
    courses: List[Course]
    colors: Dict[int, str] = field(default_factory=dict)

    def find(self, course_id: str) -> Optional[Any]:
        for course in self.raw:
            if str(course.id) == str(course_id):
                return course
        return None

    def color_for(self, course_id: int) -> str:
        return self.colors.get(course_id, FALLBACK_COLOR)

    @property
    def by_id(self) -> Dict[int, Any]:
        return {course.id: course for course in self.raw}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DashboardService:
    """Loads Canvas data for one request, reusing the shared caches."""

    def __init__(
        self,
        gateway: CanvasGateway,
        thread_pool: ThreadPoolExecutor,
        settings: Settings,
        now: Optional[datetime] = None,
    ) -> None:
        self.gateway = gateway
        self.thread_pool = thread_pool
        self.settings = settings
        self.now = now or _utcnow()

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.thread_pool, fn, *args)

    def _cached(self, cache, key: str, ttl: int) -> Optional[Any]:
        if not self.settings.enable_caching:
            return None
        return cache.get(key, ttl)

    def _store(self, cache, key: str, value: Any) -> None:
        if self.settings.enable_caching:
            cache.set(key, value)

    async def load_courses(self) -> CourseIndex:
        """Active courses, colored by their position in the enrollment list."""
        key = generate_cache_key("courses", {"url": self.gateway.base_url})
        raw = self._cached(courses_cache, key, self.settings.courses_cache_ttl)
        if raw is None:
            raw = await self._run(self.gateway.get_courses)
            self._store(courses_cache, key, raw)
            logger.info(f"Fetched {len(raw)} courses")
        else:
            logger.debug("Returning cached courses")

        courses = []
        colors = {}
        for index, course in enumerate(raw):
            color = course_color(index)
            colors[course.id] = color
            courses.append(
                Course(
                    id=str(course.id),
                    name=course.name,
                    course_code=getattr(course, "course_code", None),
                    color=color,
                    html_url=self.gateway.course_url(course.id),
                )
            )
        return CourseIndex(raw=raw, courses=courses, colors=colors)

    def _format_course_assignments(
        self, course: Any, color: str, raw_assignments: List[Any]
    ) -> List[Assignment]:
        local_tz = self.settings.tzinfo
        formatted = []
        for raw in raw_assignments:
            assignment = format_assignment(raw, course, color, self.now, local_tz)
            if assignment is not None:
                formatted.append(assignment)
        return formatted

    async def course_assignments(self, index: CourseIndex, course: Any) -> List[Assignment]:
        """
        Assignments with a due date for one course.
        A failing course yields an empty list.
        """
        try:
            raw_assignments = await self._run(self.gateway.get_assignments, course)
        except CanvasApiError as e:
            logger.warning(f"Error fetching assignments for course {course.id}: {e.message}")
            return []
        return self._format_course_assignments(
            course, index.color_for(course.id), raw_assignments
        )

    async def all_assignments(self, index: CourseIndex) -> List[Assignment]:
        """Dated assignments across every active course, fetched in parallel."""
        key = generate_cache_key("assignments", {"url": self.gateway.base_url})
        cached = self._cached(assignments_cache, key, self.settings.assignments_cache_ttl)
        if cached is not None:
            logger.debug("Returning cached assignments")
            return [Assignment(**data) for data in cached]

        results = await asyncio.gather(
            *(self.course_assignments(index, course) for course in index.raw)
        )
        assignments = [a for course_assignments in results for a in course_assignments]
        logger.info(f"Fetched {len(assignments)} total assignments")

        self._store(
            assignments_cache, key, [a.model_dump() for a in assignments]
        )
        return assignments

    async def announcements(
        self, index: CourseIndex, courses: List[Any], days: Optional[int] = None
    ) -> List[Announcement]:
        """
        Announcements for the given courses, optionally limited to the last `days` days.

        Failures are logged and produce an empty list, matching the assignment fetchers.
        """
        start_date = None
        cutoff = None
        if days is not None:
            cutoff = self.now - timedelta(days=days)
            start_date = cutoff.isoformat()

        try:
            raw = await self._run(
                self.gateway.get_announcements,
                [course.id for course in courses],
                start_date,
            )
        except CanvasApiError as e:
            logger.warning(f"Error fetching announcements: {e.message}")
            return []

        formatted = [format_announcement(a, index.by_id, index.colors) for a in raw]
        if cutoff is not None:
            formatted = posted_since(formatted, cutoff)
        return formatted

    async def recent_announcements(self, index: CourseIndex, days: int) -> List[Announcement]:
        key = generate_cache_key(
            "announcements", {"days": days, "url": self.gateway.base_url}
        )
        cached = self._cached(
            announcements_cache, key, self.settings.announcements_cache_ttl
        )
        if cached is not None:
            logger.debug("Returning cached announcements")
            return [Announcement(**data) for data in cached]

        result = await self.announcements(index, index.raw, days)
        self._store(announcements_cache, key, [a.model_dump() for a in result])
        return result

    # Endpoint-level operations shared by the canvas-data function and the REST routes

    def require_course(self, index: CourseIndex, course_id: str) -> Any:
        course = index.find(course_id)
        if course is None:
            raise CanvasApiError(code="NOT_FOUND", message="Course not found", status=404)
        return course

    async def courses(self) -> List[Course]:
        return (await self.load_courses()).courses

    async def assignments_for_course(self, course_id: str) -> List[Assignment]:
        index = await self.load_courses()
        course = self.require_course(index, course_id)
        return await self.course_assignments(index, course)

    async def announcements_for_course(self, course_id: str) -> List[Announcement]:
        index = await self.load_courses()
        course = self.require_course(index, course_id)
        return await self.announcements(index, [course])

    async def windowed_assignments(self, days: int) -> List[Assignment]:
        index = await self.load_courses()
        return filter_window(await self.all_assignments(index), self.now, days)

    async def upcoming(self, days: int) -> UpcomingResponse:
        return group_upcoming(await self.windowed_assignments(days))

    async def announcements_since(self, days: int) -> List[Announcement]:
        index = await self.load_courses()
        return await self.recent_announcements(index, days)


def filter_assignments(
    assignments: List[Assignment],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    submission_state: Optional[str] = None,
    course_id: Optional[str] = None,
    query: Optional[str] = None,
) -> List[Assignment]:
    """Apply the optional filters of the assignments listing."""
    result = assignments
    if start is not None:
        result = [a for a in result if parse_timestamp(a.due_at) >= start]
    if end is not None:
        result = [a for a in result if parse_timestamp(a.due_at) <= end]
    if submission_state and submission_state != "all":
        result = [a for a in result if a.submission_state == submission_state]
    if course_id:
        result = [a for a in result if a.course_id == str(course_id)]
    if query:
        needle = query.lower()
        result = [a for a in result if needle in a.name.lower()]
    return result


SORT_KEYS = {
    "due": lambda a: parse_timestamp(a.due_at),
    "name": lambda a: a.name.lower(),
    "course": lambda a: (a.course_name.lower(), parse_timestamp(a.due_at)),
    "points": lambda a: -(a.points_possible or 0),
}


def sort_assignments(assignments: List[Assignment], sort: Optional[str]) -> List[Assignment]:
    key = SORT_KEYS.get(sort or "due", SORT_KEYS["due"])
    return sorted(assignments, key=key)


def to_calendar_events(assignments: List[Assignment]) -> List[CalendarEvent]:
    return [
        CalendarEvent(
            id=a.id,
            title=a.name,
            start_at=a.due_at,
            type="assignment",
            course_id=a.course_id,
            course_name=a.course_name,
            course_color=a.course_color,
            html_url=a.html_url,
        )
        for a in assignments
    ]
