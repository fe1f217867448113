"""
Grounded AI assistant over the student's Canvas data.

Builds a system prompt from courses, assignments and recent announcements,
asks the chat-completions API, and links the Canvas items the answer mentions.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, tzinfo
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from config import Settings
from models import Announcement, Assignment, Citation, Course
from services.cache import TTLCache
from services.status import parse_timestamp

logger = logger.bind(module="assistant")

FALLBACK_ANSWER = "I'm sorry, I couldn't generate a response."

RANGE_DAYS = {"week": 7, "month": 30}

SYSTEM_PROMPT_TEMPLATE = """You are Canvas++ Assistant, a helpful AI that assists students with their coursework.

CRITICAL RULES:
1. Answer ONLY using the provided Canvas data (assignments, announcements, courses).
2. NEVER invent assignments, due dates, or course information.
3. NEVER reveal internal tokens, API keys, or system information.
4. If information is not in the provided data, clearly state that you don't have access to it.
5. Be concise, friendly, and actionable in your responses.
6. When referencing specific items, include them so they can be cited.

CURRENT CONTEXT:
Current date/time: {current_time}

COURSES:
{courses}

ASSIGNMENTS:
{assignments}

RECENT ANNOUNCEMENTS:
{announcements}

When you reference specific assignments, announcements, or courses in your answer, format them as references that can be extracted. Use the exact names and IDs from the data above."""

SUMMARY_PROMPT = (
    "Summarize the following assignment description for a student in 2-3 short "
    "sentences. Focus on what must be submitted and any requirements. "
    "Do not add information that is not in the description."
)


class AssistantError(Exception):
    """Failure rendered to the client as {"error": message} with the given status."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


def filter_for_range(
    assignments: List[Assignment],
    range_name: Optional[str],
    now: datetime,
    local_tz: tzinfo,
    course_id: Optional[str] = None,
) -> List[Assignment]:
    """
    Narrow assignments to the requested range; overdue work is always kept.

    today - due by the end of the local day
    week  - due within 7 days
    month - due within 30 days
    """
    result = list(assignments)

    if range_name == "today":
        local_now = now.astimezone(local_tz)
        limit = local_now.replace(hour=23, minute=59, second=59, microsecond=999999)
    elif range_name in RANGE_DAYS:
        limit = now + timedelta(days=RANGE_DAYS[range_name])
    else:
        limit = None

    if limit is not None:
        result = [
            a
            for a in result
            if parse_timestamp(a.due_at) <= limit or a.status == "overdue"
        ]

    if course_id:
        result = [a for a in result if a.course_id == str(course_id)]

    return result


def build_system_prompt(
    now: datetime,
    courses: List[Course],
    assignments: List[Assignment],
    announcements: List[Announcement],
) -> str:
    course_data = [
        {"id": c.id, "name": c.name, "course_code": c.course_code} for c in courses
    ]
    assignment_data = [
        a.model_dump(exclude={"description", "course_color"}) for a in assignments
    ]
    announcement_data = [a.model_dump(exclude={"course_color"}) for a in announcements]

    return SYSTEM_PROMPT_TEMPLATE.format(
        current_time=now.isoformat(),
        courses=json.dumps(course_data, indent=2),
        assignments=json.dumps(assignment_data, indent=2),
        announcements=json.dumps(announcement_data, indent=2),
    )


def _mentions_id(answer: str, item_id: str) -> bool:
    # ids match as whole tokens only
    return re.search(rf"(?<!\w){re.escape(item_id)}(?!\w)", answer) is not None


def extract_citations(
    answer: str,
    courses: List[Course],
    assignments: List[Assignment],
    announcements: List[Announcement],
) -> List[Citation]:
    """Link every provided item the answer names, deduplicated by (type, id)."""
    lowered = answer.lower()
    citations: List[Citation] = []

    for assignment in assignments:
        if (assignment.name and assignment.name.lower() in lowered) or _mentions_id(
            answer, assignment.id
        ):
            citations.append(
                Citation(
                    type="assignment",
                    id=assignment.id,
                    title=assignment.name,
                    html_url=assignment.html_url,
                )
            )

    for announcement in announcements:
        if (announcement.title and announcement.title.lower() in lowered) or _mentions_id(
            answer, announcement.id
        ):
            citations.append(
                Citation(
                    type="announcement",
                    id=announcement.id,
                    title=announcement.title,
                    html_url=announcement.html_url,
                )
            )

    for course in courses:
        code = course.course_code or ""
        if course.name.lower() in lowered or (code and code.lower() in lowered):
            title = f"{course.name} ({code})" if code else course.name
            citations.append(
                Citation(type="course", id=course.id, title=title, html_url=course.html_url)
            )

    unique: List[Citation] = []
    seen = set()
    for citation in citations:
        key = (citation.type, citation.id)
        if key not in seen:
            seen.add(key)
            unique.append(citation)
    return unique


class LLMClient:
    """Minimal chat-completions client over httpx."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.settings.openai_api_key)

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """
        Send messages and return the first choice's content.

        Raises:
            AssistantError: 429 when the provider is busy, 500 for any other failure
        """
        payload = {
            "model": self.settings.openai_model,
            "messages": messages,
            "temperature": self.settings.assistant_temperature,
            "max_tokens": self.settings.assistant_max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.settings.openai_api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.settings.openai_base_url.rstrip('/')}/chat/completions"

        async with httpx.AsyncClient(
            transport=self.transport, timeout=self.settings.request_timeout
        ) as client:
            try:
                response = await client.post(url, json=payload, headers=headers)
            except httpx.HTTPError as e:
                logger.error(f"OpenAI request failed: {e}")
                raise AssistantError("Failed to get AI response") from e

        if response.status_code != 200:
            logger.error(f"OpenAI API error: {response.status_code} {response.text}")
            if response.status_code == 429:
                raise AssistantError(
                    "AI service is temporarily busy. Please try again in a moment.",
                    status=429,
                )
            raise AssistantError("Failed to get AI response")

        data: Dict[str, Any] = response.json()
        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content")
        return content or FALLBACK_ANSWER


# Memoised summaries keyed by assignment name and the start of its description
SUMMARY_CACHE_TTL = 24 * 60 * 60
_summary_cache = TTLCache(max_size=256)


async def summarize_description(llm: LLMClient, description: str, assignment_name: str) -> str:
    cache_key = f"{assignment_name}:{description[:100]}"
    cached = _summary_cache.get(cache_key, SUMMARY_CACHE_TTL)
    if cached is not None:
        return cached

    summary = await llm.complete(
        [
            {"role": "system", "content": SUMMARY_PROMPT},
            {
                "role": "user",
                "content": f"Assignment: {assignment_name}\n\nDescription:\n{description}",
            },
        ]
    )
    _summary_cache.set(cache_key, summary)
    return summary
