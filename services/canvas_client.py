"""
Canvas API gateway.
Wraps canvasapi calls, maps Canvas failures to dashboard error codes and
keeps a process-wide rate-limit gate so a throttled token stops hammering Canvas.
"""

import math
import threading
import time
from typing import Any, Callable, List, Optional, TypeVar

import requests
from canvasapi import Canvas
from canvasapi.exceptions import (
    CanvasException,
    Forbidden,
    InvalidAccessToken,
    RateLimitExceeded,
    ResourceDoesNotExist,
    Unauthorized,
)
from loguru import logger

T = TypeVar("T")

DEFAULT_RETRY_AFTER = 30


class CanvasApiError(Exception):
    """Error surfaced to the dashboard as {code, message, hint, retryAfter}."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int = 500,
        hint: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.hint = hint
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "hint": self.hint,
            "retryAfter": self.retry_after,
        }


def rate_limit_error(retry_after: int) -> CanvasApiError:
    return CanvasApiError(
        code="RATE_LIMIT",
        message="Canvas API rate limit exceeded",
        hint=f"Please wait {retry_after} seconds before retrying.",
        status=429,
        retry_after=retry_after,
    )


def not_configured_error() -> CanvasApiError:
    return CanvasApiError(
        code="NOT_CONFIGURED",
        message="Canvas API not configured",
        hint="Please set CANVAS_API_URL and CANVAS_API_TOKEN in your environment.",
        status=500,
    )


class RateLimitGate:
    """Remembers until when Canvas asked us to back off."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._limited_until = 0.0
        self._lock = threading.Lock()

    def is_limited(self) -> bool:
        return self._clock() < self._limited_until

    def remaining(self) -> int:
        """Seconds left in the back-off window, rounded up."""
        return max(0, math.ceil(self._limited_until - self._clock()))

    def trip(self, retry_after: int) -> None:
        with self._lock:
            self._limited_until = self._clock() + retry_after

    def reset(self) -> None:
        with self._lock:
            self._limited_until = 0.0


rate_limit_gate = RateLimitGate()


def map_canvas_exception(exc: Exception) -> CanvasApiError:
    """Translate canvasapi / requests failures into dashboard errors."""
    # RateLimitExceeded subclasses Forbidden, so it must be checked first
    if isinstance(exc, RateLimitExceeded):
        return rate_limit_error(DEFAULT_RETRY_AFTER)
    if isinstance(exc, (InvalidAccessToken, Unauthorized, Forbidden)):
        status = 403 if isinstance(exc, Forbidden) else 401
        return CanvasApiError(
            code="AUTH",
            message="Canvas authentication failed",
            hint="Your Canvas access token may be invalid or expired.",
            status=status,
        )
    if isinstance(exc, ResourceDoesNotExist):
        return CanvasApiError(
            code="CANVAS_ERROR", message="Canvas API error: 404", status=404
        )
    if isinstance(exc, CanvasException):
        return CanvasApiError(
            code="CANVAS_ERROR", message=f"Canvas API error: {exc}", status=500
        )
    if isinstance(exc, requests.exceptions.RequestException):
        return CanvasApiError(code="NETWORK", message=str(exc) or "Network error")
    return CanvasApiError(code="UNKNOWN", message=str(exc) or "Unknown error")


class CanvasGateway:
    """
    Thin blocking wrapper around a canvasapi client.
    Methods are meant to run inside a thread pool executor.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        gate: Optional[RateLimitGate] = None,
        canvas: Optional[Canvas] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.gate = gate or rate_limit_gate
        self._canvas = canvas or Canvas(self.base_url, api_token)

    def course_url(self, course_id: Any) -> str:
        return f"{self.base_url}/courses/{course_id}"

    def _call(self, description: str, fn: Callable[[], T]) -> T:
        if self.gate.is_limited():
            raise rate_limit_error(self.gate.remaining())

        try:
            return fn()
        except Exception as e:
            error = map_canvas_exception(e)
            if error.code == "RATE_LIMIT":
                self.gate.trip(error.retry_after or DEFAULT_RETRY_AFTER)
            logger.error(f"Canvas call failed ({description}): {e}")
            raise error from e

    def get_courses(self) -> List[Any]:
        """Active enrollments only; courses hidden from the token come back without a name."""

        def fetch() -> List[Any]:
            courses = self._canvas.get_courses(enrollment_state="active", per_page=50)
            return [
                c
                for c in courses
                if getattr(c, "id", None) and getattr(c, "name", None)
            ]

        return self._call("courses", fetch)

    def get_assignments(self, course: Any) -> List[Any]:
        """Assignments of a course with the current user's submission embedded."""
        return self._call(
            f"assignments for course {course.id}",
            lambda: list(course.get_assignments(per_page=100, include=["submission"])),
        )

    def get_announcements(
        self, course_ids: List[Any], start_date: Optional[str] = None
    ) -> List[Any]:
        if not course_ids:
            return []

        kwargs = {"per_page": 50}
        if start_date:
            kwargs["start_date"] = start_date
        context_codes = [f"course_{course_id}" for course_id in course_ids]

        return self._call(
            "announcements",
            lambda: list(self._canvas.get_announcements(context_codes, **kwargs)),
        )
