from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class JournalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    teacher_id: Optional[int] = Field(None, description="Defaults to the caller")
    subject_id: int
    year_id: Optional[int] = Field(None, description="Defaults to the current year")


class JournalUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    teacher_id: Optional[int] = None
    subject_id: Optional[int] = None
    year_id: Optional[int] = None
    archived: Optional[bool] = None

    @field_validator("name", "teacher_id", "subject_id", "year_id", "archived")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class JournalTeacher(BaseModel):
    id: int
    name: str


class JournalSubject(BaseModel):
    id: int
    name: str


class JournalYear(BaseModel):
    id: int
    display_name: str
    courses: int


class JournalResponse(BaseModel):
    id: int
    name: str
    teacher: JournalTeacher
    subject: JournalSubject
    year: JournalYear
    archived: bool
    last_updated: datetime
    # Distinct course numbers that have at least one lesson, ascending.
    courses: List[int] = []


class JournalMembership(BaseModel):
    journal_id: int
