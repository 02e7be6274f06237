from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from classjournal.api.v1.users.schemas import UserBrief
from classjournal.core.enums import MarkType


class MarkCreate(BaseModel):
    """New mark. Which target fields are required depends on `type`:

    - lesson_grade, not_done, absent, late: `lesson_id` (journal and course come from the lesson)
    - course_grade: `journal_id` and `course`
    - subject_grade: `journal_id` (`subject_id` defaults to the journal's subject)
    - notice_good, notice_neutral, notice_bad: `journal_id` and/or `lesson_id`
    """

    user_id: int
    type: MarkType
    lesson_id: Optional[int] = None
    journal_id: Optional[int] = None
    course: Optional[int] = Field(None, gt=0)
    subject_id: Optional[int] = None
    grade_id: Optional[int] = None
    comment: Optional[str] = Field(None, max_length=10000)


class MarkCorrection(BaseModel):
    """Replacement values for a current mark. Omitted fields carry over from the old mark."""

    type: Optional[MarkType] = None
    grade_id: Optional[int] = None
    comment: Optional[str] = Field(None, max_length=10000)


class ExcuseCreate(BaseModel):
    mark_id: int
    excuse: str = Field(..., min_length=1, max_length=10000)


class MarkAuthor(BaseModel):
    id: int
    name: str


class MarkLesson(BaseModel):
    id: int
    date: date
    course: int
    description: str


class MarkJournal(BaseModel):
    id: int
    name: str
    subject_id: int
    subject_name: str


class MarkGrade(BaseModel):
    id: int
    identifier: str
    value: int


class MarkSubject(BaseModel):
    id: int
    name: str


class ExcuseResponse(BaseModel):
    id: int
    mark_id: int
    excuse: str
    by: MarkAuthor
    at: datetime


class MarkResponse(BaseModel):
    id: int
    user_id: int
    type: str
    lesson: Optional[MarkLesson] = None
    course: Optional[int] = None
    journal: Optional[MarkJournal] = None
    subject: Optional[MarkSubject] = None
    grade: Optional[MarkGrade] = None
    comment: Optional[str] = None
    current: bool
    deleted: bool
    # Ancestors replaced by this mark, oldest first.
    previous_ids: List[int] = []
    by: MarkAuthor
    at: datetime
    updated_at: datetime
    excuse: Optional[ExcuseResponse] = None


class JournalMatrixRow(BaseModel):
    student: UserBrief
    marks: List[MarkResponse]
