from typing import Optional

from pydantic import BaseModel, Field, field_validator


class GradeCreate(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=3, description='Label, e.g. "A" or "5"')
    value: int = Field(..., gt=0)


class GradeUpdate(BaseModel):
    identifier: Optional[str] = Field(None, min_length=1, max_length=3)
    value: Optional[int] = Field(None, gt=0)

    @field_validator("identifier", "value")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class GradeResponse(BaseModel):
    id: int
    identifier: str
    value: int

    class Config:
        from_attributes = True
