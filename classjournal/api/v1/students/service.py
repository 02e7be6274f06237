from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.lessons.service import list_latest_for_student
from classjournal.api.v1.marks.service import latest_marks
from classjournal.core.dates import format_date

from .schemas import LatestByDate


async def latest_by_date(
    db: AsyncSession,
    student_id: int,
    date_from: Optional[date] = None,
    date_until: Optional[date] = None,
) -> List[LatestByDate]:
    """Latest marks then latest lessons, grouped by day.

    Days appear in the order they are first seen: mark days (by last change,
    newest first) before any day that only has lessons.
    """
    marks = await latest_marks(db, student_id, date_from, date_until)
    lessons = await list_latest_for_student(db, student_id, date_from, date_until)

    days: Dict[str, LatestByDate] = {}
    for mark in marks:
        key = format_date(mark.updated_at.date())
        days.setdefault(key, LatestByDate(date=key)).marks.append(mark)
    for lesson in lessons:
        key = format_date(lesson.date)
        days.setdefault(key, LatestByDate(date=key)).lessons.append(lesson)
    return list(days.values())
