from typing import List

from pydantic import BaseModel

from classjournal.api.v1.lessons.schemas import LessonResponse
from classjournal.api.v1.marks.schemas import MarkResponse


class LatestByDate(BaseModel):
    """What happened to a student on one calendar day."""

    date: str
    marks: List[MarkResponse] = []
    lessons: List[LessonResponse] = []
