"""Assistant function: context building, OpenAI call and citations."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest

from dependencies import get_llm_client, get_optional_gateway
from models import Announcement, Assignment, Course
from services.assistant import (
    FALLBACK_ANSWER,
    SUMMARY_CACHE_TTL,
    LLMClient,
    _summary_cache,
    build_system_prompt,
    extract_citations,
    filter_for_range,
    summarize_description,
)

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def assignment(assignment_id: str, name: str, due: datetime, status: str = "future", course_id: str = "1"):
    return Assignment(
        id=assignment_id,
        name=name,
        course_id=course_id,
        course_name="Course",
        due_at=due.isoformat(),
        status=status,
        submission_state="not_submitted",
        html_url=f"https://canvas.test/a/{assignment_id}",
    )


COURSES = [
    Course(id="1", name="Calculus II", course_code="MATH-152", color="#4DA3FF", html_url="https://canvas.test/courses/1"),
    Course(id="2", name="Physics I", course_code="PHYS-101", color="#10B981", html_url="https://canvas.test/courses/2"),
]
ASSIGNMENTS = [
    assignment("11", "Problem Set 4", NOW + timedelta(days=1)),
    assignment("12", "Lab Report", NOW + timedelta(days=3), course_id="2"),
]
ANNOUNCEMENTS = [
    Announcement(
        id="31",
        title="Office hours moved",
        course_id="1",
        course_name="Calculus II",
        posted_at=NOW.isoformat(),
        message_preview="Office hours are now on Thursday.",
    )
]


class TestFilterForRange:
    items = [
        assignment("late", "Late", NOW - timedelta(days=3), status="overdue"),
        assignment("today", "Today", NOW + timedelta(hours=5)),
        assignment("week", "Week", NOW + timedelta(days=6), course_id="2"),
        assignment("month", "Month", NOW + timedelta(days=25)),
    ]

    def test_today_keeps_overdue(self) -> None:
        result = filter_for_range(self.items, "today", NOW, timezone.utc)
        assert [a.id for a in result] == ["late", "today"]

    def test_week(self) -> None:
        result = filter_for_range(self.items, "week", NOW, timezone.utc)
        assert [a.id for a in result] == ["late", "today", "week"]

    def test_month(self) -> None:
        result = filter_for_range(self.items, "month", NOW, timezone.utc)
        assert len(result) == 4

    def test_no_range_keeps_all_and_course_filter_applies(self) -> None:
        result = filter_for_range(self.items, None, NOW, timezone.utc, course_id="2")
        assert [a.id for a in result] == ["week"]


class TestCitations:
    def test_names_and_ids_are_cited_once(self) -> None:
        answer = (
            "Start with problem set 4 (id 11) before the Lab Report. "
            "Also note: Office hours moved. Problem Set 4 is for MATH-152."
        )
        citations = extract_citations(answer, COURSES, ASSIGNMENTS, ANNOUNCEMENTS)
        keys = [(c.type, c.id) for c in citations]
        assert keys == [
            ("assignment", "11"),
            ("assignment", "12"),
            ("announcement", "31"),
            ("course", "1"),
        ]
        assert citations[-1].title == "Calculus II (MATH-152)"

    def test_ids_match_whole_numbers_only(self) -> None:
        citations = extract_citations("Room 112 is open.", COURSES, ASSIGNMENTS, [])
        assert citations == []

    def test_unmentioned_items_are_not_cited(self) -> None:
        assert extract_citations("Nothing is due.", COURSES, ASSIGNMENTS, ANNOUNCEMENTS) == []

    def test_unnamed_assignment_is_not_cited_by_every_answer(self) -> None:
        unnamed = assignment("13", "", NOW + timedelta(days=2))
        assert extract_citations("Nothing is due.", [], [unnamed], []) == []
        citations = extract_citations("See item 13.", [], [unnamed], [])
        assert [(c.type, c.id) for c in citations] == [("assignment", "13")]


def test_system_prompt_contains_rules_and_context() -> None:
    prompt = build_system_prompt(NOW, COURSES, ASSIGNMENTS, ANNOUNCEMENTS)
    assert "NEVER invent assignments" in prompt
    assert NOW.isoformat() in prompt
    assert '"name": "Problem Set 4"' in prompt
    assert "Office hours moved" in prompt


def openai_transport(content, status_code: int = 200, seen: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content))
        if status_code != 200:
            return httpx.Response(status_code, json={"error": {"message": "nope"}})
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return httpx.MockTransport(handler)


@pytest.fixture()
def use_llm(app, settings):
    def install(transport: httpx.MockTransport, **overrides) -> None:
        llm_settings = settings.model_copy(update=overrides)
        app.dependency_overrides[get_llm_client] = lambda: LLMClient(llm_settings, transport=transport)

    return install


@pytest.mark.asyncio
class TestAssistantEndpoint:
    async def test_answer_with_citations(self, client: httpx.AsyncClient, use_llm) -> None:
        seen: list = []
        use_llm(openai_transport("Finish Series Quiz first, then check Midterm moved.", seen=seen))

        r = await client.post(
            "/api/assistant", json={"message": "What should I do first?", "context": {"range": "week"}}
        )
        assert r.status_code == 200
        body = r.json()
        assert body["answer"].startswith("Finish Series Quiz")
        assert [(c["type"], c["id"]) for c in body["citations"]] == [
            ("assignment", "1002"),
            ("announcement", "5001"),
        ]

        payload = seen[0]
        assert payload["temperature"] == 0.3
        assert payload["max_tokens"] == 1000
        system, user = payload["messages"]
        assert user == {"role": "user", "content": "What should I do first?"}
        # week range: overdue work stays, work due in 10 days does not
        assert "Integration Problem Set" in system["content"]
        assert "Python Functions Lab" not in system["content"]
        assert "Lab closed" not in system["content"]

    async def test_course_context(self, client: httpx.AsyncClient, use_llm) -> None:
        seen: list = []
        use_llm(openai_transport("ok", seen=seen))
        await client.post("/api/assistant", json={"message": "hi", "context": {"courseId": "202"}})
        system = seen[0]["messages"][0]["content"]
        assert "Python Functions Lab" in system
        assert "Series Quiz" not in system

    async def test_no_range_includes_work_beyond_a_month(
        self, client: httpx.AsyncClient, gateway, now, use_llm
    ) -> None:
        gateway.assignments[101].append(
            SimpleNamespace(
                id=1005,
                name="Capstone Report",
                due_at=(now + timedelta(days=45)).isoformat(),
                points_possible=50,
                html_url=None,
                description=None,
                submission={},
            )
        )
        seen: list = []
        use_llm(openai_transport("ok", seen=seen))
        r = await client.post("/api/assistant", json={"message": "hi"})
        assert r.status_code == 200
        system = seen[0]["messages"][0]["content"]
        assert "Capstone Report" in system
        assert "Old Essay" in system

    async def test_today_range_keeps_long_overdue_work(self, client: httpx.AsyncClient, use_llm) -> None:
        seen: list = []
        use_llm(openai_transport("ok", seen=seen))
        await client.post("/api/assistant", json={"message": "hi", "context": {"range": "today"}})
        system = seen[0]["messages"][0]["content"]
        assert "Old Essay" in system
        assert "Integration Problem Set" in system
        assert "Final Project" not in system

    @pytest.mark.parametrize("body", [{}, {"message": 42}, {"message": ""}, ["message"]])
    async def test_invalid_message(self, client: httpx.AsyncClient, use_llm, body) -> None:
        use_llm(openai_transport("unused"))
        r = await client.post("/api/assistant", json=body)
        assert r.status_code == 400
        assert r.json() == {"error": "Invalid message"}

    async def test_invalid_context(self, client: httpx.AsyncClient, use_llm) -> None:
        use_llm(openai_transport("unused"))
        r = await client.post("/api/assistant", json={"message": "hi", "context": {"range": "year"}})
        assert r.status_code == 400

    async def test_not_configured(self, client: httpx.AsyncClient, use_llm) -> None:
        use_llm(openai_transport("unused"), openai_api_key=None)
        r = await client.post("/api/assistant", json={"message": "hi"})
        assert r.status_code == 500
        assert r.json() == {"error": "AI service is not configured"}

    async def test_canvas_not_configured(self, app, client: httpx.AsyncClient, use_llm) -> None:
        use_llm(openai_transport("unused"))
        app.dependency_overrides[get_optional_gateway] = lambda: None
        r = await client.post("/api/assistant", json={"message": "hi"})
        assert r.status_code == 500
        assert "not configured" in r.json()["error"]

    async def test_upstream_busy(self, client: httpx.AsyncClient, use_llm) -> None:
        use_llm(openai_transport(None, status_code=429))
        r = await client.post("/api/assistant", json={"message": "hi"})
        assert r.status_code == 429
        assert r.json() == {"error": "AI service is temporarily busy. Please try again in a moment."}

    async def test_upstream_failure(self, client: httpx.AsyncClient, use_llm) -> None:
        use_llm(openai_transport(None, status_code=502))
        r = await client.post("/api/assistant", json={"message": "hi"})
        assert r.status_code == 500
        assert r.json() == {"error": "Failed to get AI response"}

    async def test_empty_answer_falls_back(self, client: httpx.AsyncClient, use_llm) -> None:
        use_llm(openai_transport(""))
        r = await client.post("/api/assistant", json={"message": "hi"})
        assert r.json()["answer"] == FALLBACK_ANSWER

    async def test_rate_limit_per_client(self, client: httpx.AsyncClient, use_llm) -> None:
        use_llm(openai_transport("ok"))
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1"}
        for _ in range(30):
            r = await client.post("/api/assistant", json={"message": "hi"}, headers=headers)
            assert r.status_code == 200

        r = await client.post("/api/assistant", json={"message": "hi"}, headers=headers)
        assert r.status_code == 429
        assert r.json() == {"error": "Rate limit exceeded. Please wait a moment before trying again."}

        r = await client.post(
            "/api/assistant", json={"message": "hi"}, headers={"x-forwarded-for": "198.51.100.2"}
        )
        assert r.status_code == 200


@pytest.mark.asyncio
async def test_summarize_is_memoised(client: httpx.AsyncClient, use_llm) -> None:
    seen: list = []
    use_llm(openai_transport("Submit three functions.", seen=seen))
    body = {"description": "<p>Write three functions.</p>", "assignmentName": "Python Functions Lab"}

    first = await client.post("/api/assistant/summarize", json=body)
    second = await client.post("/api/assistant/summarize", json=body)

    assert first.json() == {"summary": "Submit three functions."}
    assert second.json() == first.json()
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_summary_cache_is_bounded(settings) -> None:
    llm = LLMClient(settings, transport=openai_transport("Short."))
    limit = _summary_cache.stats(SUMMARY_CACHE_TTL)["max_size"]

    for n in range(limit + 10):
        await summarize_description(llm, f"Description {n}", f"Assignment {n}")

    assert _summary_cache.size() == limit
