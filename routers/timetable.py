"""
Timetable endpoints.
"""

from datetime import datetime

from fastapi import APIRouter

from dependencies import SettingsDep
from models import TimetableTodayResponse, TimetableWeekResponse
from services.timetable import (
    PERIOD_TIMES,
    current_period,
    day_name,
    next_period,
    schedule_for,
    timetable_by_day,
)

router = APIRouter(
    prefix="/api/timetable",
    tags=["timetable"],
)


@router.get("", response_model=TimetableWeekResponse)
async def get_week() -> TimetableWeekResponse:
    """Monday to Friday timetable with period start and end times."""
    return TimetableWeekResponse(days=timetable_by_day(), period_times=PERIOD_TIMES)


@router.get("/today", response_model=TimetableTodayResponse)
async def get_today(settings: SettingsDep) -> TimetableTodayResponse:
    """Today's classes in the school's timezone, with the current and next period."""
    now = datetime.now(settings.tzinfo)
    return TimetableTodayResponse(
        day=day_name(now),
        schedule=schedule_for(now),
        current_period=current_period(now),
        next_period=next_period(now),
    )
