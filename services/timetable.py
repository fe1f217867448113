"""
Static class timetable.
The weekly schedule is a fixed CSV; lookups answer "what is on today / now / next".
"""

from datetime import datetime, time
from io import StringIO
from typing import Dict, List, Optional

import pandas as pd

from models import PeriodTime, TimetableEntry

DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

PERIOD_TIMES: Dict[str, PeriodTime] = {
    "Period 1": PeriodTime(start="08:10", end="08:50"),
    "Period 2": PeriodTime(start="08:50", end="09:30"),
    "Period 3": PeriodTime(start="09:30", end="10:10"),
    "Period 4": PeriodTime(start="10:10", end="10:50"),
    "Period 5": PeriodTime(start="11:10", end="11:50"),
    "Period 6": PeriodTime(start="11:50", end="12:30"),
    "Period 7": PeriodTime(start="12:30", end="13:10"),
    "Period 8": PeriodTime(start="13:10", end="13:50"),
}

SUBJECT_COLORS = {
    "IGCSE Computer Science": "#3B82F6",
    "IGCSE Physics": "#8B5CF6",
    "IGCSE French": "#EC4899",
    "IGCSE Maths Ext": "#F59E0B",
    "IGCSE Global Perspectives": "#10B981",
    "IGCSE English Literature": "#EF4444",
    "IGCSE Economics": "#06B6D4",
    "Italian Language and Culture Acquisition": "#22C55E",
    "Cycle Tests": "#6B7280",
    "HS Form": "#9CA3AF",
}
DEFAULT_SUBJECT_COLOR = "#6B7280"

TIMETABLE_CSV = """Day,Period,Start,Subject,Course,Teacher,Room
Monday,Period 1,08:10,IGCSE Computer Science,Y10 IGCSE_CS 104,Mr Harkins,301
Monday,Period 2,08:50,IGCSE Computer Science,Y10 IGCSE_CS 104,Mr Harkins,301
Monday,Period 3,09:30,IGCSE Physics,Y10 IGCSE_PHY 103,Mr Fulgham,304
Monday,Period 4,10:10,IGCSE Physics,Y10 IGCSE_PHY 103,Mr Fulgham,304
Monday,Period 5,11:10,Cycle Tests,Y10 S_CTEST 10H,Ms Congedo,
Monday,Period 6,11:50,HS Form,Y10 PSHE/ASS 10H,Mr Scotto,
Monday,Period 7,12:30,Italian Language and Culture Acquisition,Y10 ITA_LCA 101,Miss Gilardoni,311
Monday,Period 8,13:10,Italian Language and Culture Acquisition,Y10 ITA_LCA 101,Miss Gilardoni,311
Tuesday,Period 1,08:10,IGCSE French,Y10 IGCSE_FRE 104,Miss Guidez,302
Tuesday,Period 2,08:50,IGCSE French,Y10 IGCSE_FRE 104,Miss Guidez,302
Tuesday,Period 3,09:30,IGCSE Maths Ext,Y10 MAT_EXT 104,Mr Guite,209
Tuesday,Period 4,10:10,IGCSE Global Perspectives,Y10 IGCSE_GP 1,Ms Connell,206
Tuesday,Period 5,11:10,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,209
Tuesday,Period 6,11:50,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,209
Tuesday,Period 7,12:30,IGCSE Economics,Y10 IGCSE_ECO 106,Ms Marques,315
Tuesday,Period 8,13:10,IGCSE Economics,Y10 IGCSE_ECO 106,Ms Marques,315
Wednesday,Period 1,08:10,IGCSE Economics,Y10 IGCSE_ECO 106,Ms Marques,315
Wednesday,Period 2,08:50,IGCSE Economics,Y10 IGCSE_ECO 106,Ms Marques,315
Wednesday,Period 3,09:30,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,
Wednesday,Period 4,10:10,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,
Wednesday,Period 5,11:10,IGCSE Global Perspectives,Y10 IGCSE_GP 1,Ms Connell,206
Wednesday,Period 6,11:50,Cycle Tests,Y10 S_CTEST 10H,Mr Stam,
Wednesday,Period 7,12:30,IGCSE Maths Ext,Y10 MAT_EXT 104,Mr Guite,209
Wednesday,Period 8,13:10,IGCSE Maths Ext,Y10 MAT_EXT 104,Mr Guite,209
Thursday,Period 1,08:10,IGCSE Physics,Y10 IGCSE_PHY 103,Mr Fulgham,304
Thursday,Period 2,08:50,IGCSE Physics,Y10 IGCSE_PHY 103,Mr Fulgham,304
Thursday,Period 3,09:30,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,
Thursday,Period 4,10:10,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,
Thursday,Period 5,11:10,IGCSE French,Y10 IGCSE_FRE 104,Miss Guidez,302
Thursday,Period 6,11:50,IGCSE French,Y10 IGCSE_FRE 104,Miss Guidez,302
Thursday,Period 7,12:30,IGCSE Computer Science,Y10 IGCSE_CS 104,Mr Harkins,301
Thursday,Period 8,13:10,IGCSE Computer Science,Y10 IGCSE_CS 104,Mr Harkins,301
Friday,Period 1,08:10,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,
Friday,Period 2,08:50,IGCSE English Literature,Y10 IGCSE_LIT 104,Mr Scotto,
Friday,Period 3,09:30,IGCSE Maths Ext,Y10 MAT_EXT 104,Mr Guite,209
Friday,Period 4,10:10,IGCSE Maths Ext,Y10 MAT_EXT 104,Mr Guite,209
Friday,Period 5,11:10,IGCSE Global Perspectives,Y10 IGCSE_GP 1,Ms Connell,206
Friday,Period 6,11:50,IGCSE Global Perspectives,Y10 IGCSE_GP 1,Ms Connell,206
Friday,Period 7,12:30,Italian Language and Culture Acquisition,Y10 ITA_LCA 101,Miss Gilardoni,311
Friday,Period 8,13:10,Italian Language and Culture Acquisition,Y10 ITA_LCA 101,Miss Gilardoni,311"""


def subject_color(subject: str) -> str:
    return SUBJECT_COLORS.get(subject, DEFAULT_SUBJECT_COLOR)


def parse_timetable(raw: str = TIMETABLE_CSV) -> List[TimetableEntry]:
    """Parse the timetable CSV; blank cells (e.g. no room) become empty strings."""
    df = pd.read_csv(StringIO(raw), dtype=str, keep_default_na=False)
    df.columns = df.columns.str.lower()
    df = df[(df["day"] != "") & (df["period"] != "")]

    return [
        TimetableEntry(**row, color=subject_color(row["subject"]))
        for row in df.to_dict(orient="records")
    ]


TIMETABLE = parse_timetable()


def timetable_by_day(entries: Optional[List[TimetableEntry]] = None) -> Dict[str, List[TimetableEntry]]:
    by_day: Dict[str, List[TimetableEntry]] = {day: [] for day in DAYS}
    for entry in entries if entries is not None else TIMETABLE:
        if entry.day in by_day:
            by_day[entry.day].append(entry)
    return by_day


def day_name(now: datetime) -> Optional[str]:
    """School day for a datetime, or None on weekends."""
    weekday = now.weekday()
    return DAYS[weekday] if weekday < len(DAYS) else None


def schedule_for(now: datetime) -> List[TimetableEntry]:
    day = day_name(now)
    if day is None:
        return []
    return timetable_by_day()[day]


def _clock(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def current_period(now: datetime) -> Optional[TimetableEntry]:
    """Entry whose period covers now (start inclusive, end exclusive)."""
    current = now.time().replace(second=0, microsecond=0)
    for entry in schedule_for(now):
        times = PERIOD_TIMES.get(entry.period)
        if times and _clock(times.start) <= current < _clock(times.end):
            return entry
    return None


def next_period(now: datetime) -> Optional[TimetableEntry]:
    current = now.time().replace(second=0, microsecond=0)
    for entry in schedule_for(now):
        times = PERIOD_TIMES.get(entry.period)
        if times and current < _clock(times.start):
            return entry
    return None
