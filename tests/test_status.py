"""Due status, submission state and window rules."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from models import Assignment
from services.status import (
    COURSE_COLORS,
    course_color,
    derive_status,
    derive_submission_state,
    filter_window,
    format_announcement,
    format_assignment,
    group_upcoming,
    message_preview,
    parse_timestamp,
)

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def make(assignment_id: str, due: datetime, status: str = "future") -> Assignment:
    return Assignment(
        id=assignment_id,
        name=f"Assignment {assignment_id}",
        course_id="1",
        course_name="Course",
        due_at=due.isoformat(),
        status=status,
        submission_state="not_submitted",
    )


class TestDeriveStatus:
    def test_past_due_is_overdue(self) -> None:
        assert derive_status(NOW - timedelta(minutes=1), NOW) == "overdue"

    def test_later_same_day_is_due_today(self) -> None:
        assert derive_status(NOW + timedelta(hours=10), NOW) == "due_today"

    def test_due_exactly_now_is_not_overdue(self) -> None:
        assert derive_status(NOW, NOW) == "due_today"

    def test_tomorrow_within_24_hours_is_due_soon(self) -> None:
        # 20 hours ahead crosses midnight
        assert derive_status(NOW + timedelta(hours=20), NOW) == "due_soon"

    def test_within_48_hours_is_due_soon(self) -> None:
        assert derive_status(NOW + timedelta(hours=47), NOW) == "due_soon"

    def test_beyond_48_hours_is_future(self) -> None:
        assert derive_status(NOW + timedelta(hours=49), NOW) == "future"

    def test_local_calendar_day_decides_due_today(self) -> None:
        tz = ZoneInfo("America/New_York")
        # 09:00 UTC is 05:00 in New York; 20:00 UTC is still the same local day
        assert derive_status(NOW + timedelta(hours=11), NOW, tz) == "due_today"
        # 06:00 UTC the next day is 02:00 the next local day
        assert derive_status(NOW + timedelta(hours=21), NOW, tz) == "due_soon"


class TestSubmissionState:
    def test_grade_wins(self) -> None:
        assert derive_submission_state({"grade": "B+", "submitted_at": None}, "overdue") == "graded"

    def test_grade_zero_counts_as_graded(self) -> None:
        assert derive_submission_state({"grade": "0"}, "future") == "graded"

    def test_submitted(self) -> None:
        assert derive_submission_state({"submitted_at": "2025-03-09T10:00:00Z"}, "overdue") == "submitted"

    def test_overdue_without_submission_is_missing(self) -> None:
        assert derive_submission_state({}, "overdue") == "missing"
        assert derive_submission_state(None, "overdue") == "missing"

    def test_open_work_is_not_submitted(self) -> None:
        assert derive_submission_state(None, "due_soon") == "not_submitted"


def test_parse_timestamp_handles_zulu_and_naive() -> None:
    assert parse_timestamp("2025-03-10T09:00:00Z") == NOW
    assert parse_timestamp("2025-03-10T09:00:00") == NOW
    assert parse_timestamp(None) is None


def test_course_colors_cycle() -> None:
    assert course_color(0) == "#4DA3FF"
    assert course_color(len(COURSE_COLORS)) == course_color(0)


def test_format_assignment_skips_undated() -> None:
    course = SimpleNamespace(id=1, name="Course")
    raw = SimpleNamespace(id=7, name="Reading", due_at=None)
    assert format_assignment(raw, course, "#4DA3FF", NOW) is None


def test_format_assignment_reads_submission_object() -> None:
    course = SimpleNamespace(id=1, name="Course")
    raw = SimpleNamespace(
        id=7,
        name="Essay",
        due_at="2025-03-08T23:59:00Z",
        points_possible=50.0,
        html_url="https://canvas.test/courses/1/assignments/7",
        submission=SimpleNamespace(submitted_at=None, grade=None),
    )
    assignment = format_assignment(raw, course, "#10B981", NOW)

    assert assignment.id == "7"
    assert assignment.course_id == "1"
    assert assignment.status == "overdue"
    assert assignment.submission_state == "missing"
    assert assignment.course_color == "#10B981"


class TestWindow:
    def test_keeps_recent_past_and_near_future_sorted(self) -> None:
        items = [
            make("late", NOW + timedelta(days=13)),
            make("old", NOW - timedelta(days=31)),
            make("recent", NOW - timedelta(days=29), status="overdue"),
            make("far", NOW + timedelta(days=15)),
            make("soon", NOW + timedelta(days=1)),
        ]
        result = filter_window(items, NOW, days=14)
        assert [a.id for a in result] == ["recent", "soon", "late"]

    def test_window_bounds_are_inclusive(self) -> None:
        items = [
            make("edge_future", NOW + timedelta(days=14)),
            make("edge_past", NOW - timedelta(days=30), status="overdue"),
            make("just_past", NOW - timedelta(days=30, seconds=1), status="overdue"),
            make("just_future", NOW + timedelta(days=14, seconds=1)),
        ]
        result = filter_window(items, NOW, days=14)
        assert [a.id for a in result] == ["edge_past", "edge_future"]

    def test_group_maps_future_to_this_week(self) -> None:
        grouped = group_upcoming(
            [
                make("a", NOW - timedelta(days=1), status="overdue"),
                make("b", NOW + timedelta(hours=2), status="due_today"),
                make("c", NOW + timedelta(hours=30), status="due_soon"),
                make("d", NOW + timedelta(days=5), status="future"),
            ]
        )
        assert [a.id for a in grouped.overdue] == ["a"]
        assert [a.id for a in grouped.due_today] == ["b"]
        assert [a.id for a in grouped.due_soon] == ["c"]
        assert [a.id for a in grouped.this_week] == ["d"]


@pytest.mark.parametrize(
    "message, expected",
    [
        ("<p>Hello   <b>class</b></p>", "Hello class"),
        ("", ""),
        (None, ""),
    ],
)
def test_message_preview_strips_markup(message, expected) -> None:
    assert message_preview(message) == expected


def test_message_preview_truncates_long_text() -> None:
    preview = message_preview("word " * 100)
    assert len(preview) == 150
    assert preview.endswith("...")


def test_format_announcement_unknown_course() -> None:
    raw = SimpleNamespace(
        id=9,
        title="Hello",
        context_code="course_999",
        posted_at="2025-03-09T10:00:00Z",
        message="<p>Hi</p>",
        html_url=None,
    )
    announcement = format_announcement(raw, {}, {})
    assert announcement.course_name == "Unknown Course"
    assert announcement.course_color == "#6366F1"
    assert announcement.course_id == "999"


@pytest.mark.parametrize("context_code", [None, "", "group_12", "course_abc"])
def test_format_announcement_without_course_has_empty_course_id(context_code) -> None:
    raw = SimpleNamespace(
        id=10,
        title="Orphan",
        context_code=context_code,
        posted_at="2025-03-09T10:00:00Z",
        message=None,
        html_url=None,
    )
    announcement = format_announcement(raw, {}, {})
    assert announcement.course_id == ""
    assert announcement.course_name == "Unknown Course"
