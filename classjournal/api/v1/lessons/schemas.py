from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from classjournal.core.dates import CalendarDate


class LessonCreate(BaseModel):
    journal_id: int
    description: str = Field("", max_length=10000)
    date: CalendarDate
    course: int = Field(..., gt=0)


class LessonUpdate(BaseModel):
    version: int = Field(..., ge=1)
    description: Optional[str] = Field(None, max_length=10000)
    date: Optional[CalendarDate] = None
    course: Optional[int] = Field(None, gt=0)

    @field_validator("description", "date", "course")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class LessonJournal(BaseModel):
    id: int
    name: str
    archived: bool


class LessonSubject(BaseModel):
    id: int
    name: str


class LessonResponse(BaseModel):
    id: int
    journal: LessonJournal
    subject: LessonSubject
    description: str
    date: date
    course: int
    created_at: datetime
    updated_at: datetime
    version: int
