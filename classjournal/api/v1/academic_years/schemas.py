from typing import Optional

from pydantic import BaseModel, Field


class YearCreate(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=100, description='e.g. "2024/2025"')
    courses: int = Field(..., gt=0, description="Number of courses (terms) the year is split into")
    current: bool = Field(False, description="Make this the current year; clears the flag on every other year")


class YearStats(BaseModel):
    journal_count: int
    student_count: int


class YearResponse(BaseModel):
    id: int
    display_name: str
    courses: int
    current: bool
    stats: Optional[YearStats] = None

    class Config:
        from_attributes = True
