from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from classjournal.core.dates import CalendarDate
from classjournal.core.enums import AssignmentType


class AssignmentCreate(BaseModel):
    journal_id: int
    description: str = Field(..., min_length=1, max_length=10000)
    deadline: CalendarDate
    type: AssignmentType


class AssignmentUpdate(BaseModel):
    version: int = Field(..., ge=1)
    description: Optional[str] = Field(None, min_length=1, max_length=10000)
    deadline: Optional[CalendarDate] = None
    type: Optional[AssignmentType] = None

    @field_validator("description", "deadline", "type")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class AssignmentJournal(BaseModel):
    id: int
    name: str
    archived: bool


class AssignmentSubject(BaseModel):
    id: int
    name: str


class AssignmentResponse(BaseModel):
    id: int
    journal: AssignmentJournal
    subject: AssignmentSubject
    description: str
    deadline: date
    type: str
    created_at: datetime
    updated_at: datetime
    version: int


class StudentAssignmentResponse(AssignmentResponse):
    done: bool
