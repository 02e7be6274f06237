from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    teacher_id: Optional[int] = None


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    teacher_id: Optional[int] = None
    archived: Optional[bool] = None

    @field_validator("name", "archived")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class ClassResponse(BaseModel):
    id: int
    name: str
    teacher_id: Optional[int] = None
    archived: bool
    # Name the class carries in the current year, when one is set (e.g. 8A for class 7A).
    display_name: Optional[str] = None


class StudentClassSet(BaseModel):
    class_id: int


class ClassYearNameSet(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=50)
