from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from classjournal.core.dates import CalendarDate
from classjournal.core.enums import Role


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: Role
    phone_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    birth_date: Optional[CalendarDate] = None
    class_id: Optional[int] = Field(None, description="Students only")


class UserUpdate(BaseModel):
    """Partial update. Omitted fields are left alone; `version` must match the stored row."""

    version: int = Field(..., ge=1)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=72)
    role: Optional[Role] = None
    phone_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    birth_date: Optional[CalendarDate] = None
    class_id: Optional[int] = None
    active: Optional[bool] = None
    archived: Optional[bool] = None

    @field_validator("name", "email", "password", "role", "active", "archived")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[date] = None
    class_id: Optional[int] = None
    created_at: datetime
    active: bool
    archived: bool
    version: int

    class Config:
        from_attributes = True


class UserBrief(BaseModel):
    """Name-only view used in search results and parent/child listings."""

    id: int
    name: str
    role: str
    class_id: Optional[int] = None

    class Config:
        from_attributes = True


class ParentLink(BaseModel):
    parent_id: int
