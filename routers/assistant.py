"""
assistant function.
Answers questions about the student's coursework from their Canvas data and
links the items the answer refers to.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from config import get_settings
from dependencies import (
    LLMClientDep,
    OptionalGatewayDep,
    SettingsDep,
    ThreadPoolDep,
    limiter,
)
from models import (
    AssistantContext,
    AssistantErrorResponse,
    AssistantResponse,
    SummaryRequest,
    SummaryResponse,
)
from services.assistant import (
    AssistantError,
    build_system_prompt,
    extract_citations,
    filter_for_range,
    summarize_description,
)
from services.canvas_client import CanvasApiError
from services.dashboard import DashboardService, sort_assignments

logger = logger.bind(module="assistant")

router = APIRouter(
    prefix="/api/assistant",
    tags=["assistant"],
    responses={
        400: {"model": AssistantErrorResponse},
        429: {"model": AssistantErrorResponse},
        500: {"model": AssistantErrorResponse},
    },
)


def assistant_rate_limit() -> str:
    return get_settings().assistant_rate_limit


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("", response_model=AssistantResponse)
@limiter.limit(assistant_rate_limit)
async def ask_assistant(
    request: Request,
    settings: SettingsDep,
    llm: LLMClientDep,
    gateway: OptionalGatewayDep,
    thread_pool: ThreadPoolDep,
):
    """
    Ask a question about assignments, announcements and courses.

    Body: `{"message": str, "context": {"range": "today" | "week" | "month", "courseId": str}}`
    """
    if not llm.configured:
        logger.error("OPENAI_API_KEY is not configured")
        return error_response("AI service is not configured", 500)

    try:
        body = await request.json()
    except ValueError:
        body = None

    message = body.get("message") if isinstance(body, dict) else None
    if not message or not isinstance(message, str):
        return error_response("Invalid message", 400)

    try:
        context = AssistantContext.model_validate(body.get("context") or {})
    except ValidationError:
        return error_response("Invalid context", 400)

    if gateway is None:
        return error_response("Canvas API not configured", 500)

    try:
        dashboard = DashboardService(gateway, thread_pool, settings)
        index = await dashboard.load_courses()
        assignments = filter_for_range(
            sort_assignments(await dashboard.all_assignments(index), "due"),
            context.range,
            dashboard.now,
            settings.tzinfo,
            context.course_id,
        )
        announcements = await dashboard.recent_announcements(
            index, settings.assistant_announcement_days
        )

        system_prompt = build_system_prompt(
            datetime.now(timezone.utc), index.courses, assignments, announcements
        )
        answer = await llm.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ]
        )
        citations = extract_citations(answer, index.courses, assignments, announcements)
        logger.info(
            f"Answered assistant question with {len(citations)} citations "
            f"({len(assignments)} assignments in context)"
        )
        return AssistantResponse(answer=answer, citations=citations)

    except AssistantError as e:
        return error_response(e.message, e.status)
    except CanvasApiError as e:
        logger.warning(f"Canvas error while building assistant context: {e.code} {e.message}")
        return error_response(e.message, e.status)
    except Exception as e:
        logger.exception(f"Assistant error: {e}")
        return error_response("An unexpected error occurred", 500)


@router.post("/summarize", response_model=SummaryResponse)
@limiter.limit(assistant_rate_limit)
async def summarize(request: Request, summary_request: SummaryRequest, llm: LLMClientDep):
    """Short plain-language summary of an assignment description."""
    if not llm.configured:
        return error_response("AI service is not configured", 500)

    try:
        summary = await summarize_description(
            llm, summary_request.description, summary_request.assignment_name
        )
    except AssistantError as e:
        return error_response(e.message, e.status)
    return SummaryResponse(summary=summary)
