from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from classjournal.core.enums import Role


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    archived: Optional[bool] = None

    @field_validator("name", "archived")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class GroupResponse(BaseModel):
    id: int
    name: str
    archived: bool

    class Config:
        from_attributes = True


class GroupMembersAdd(BaseModel):
    """Users to add: listed explicitly, by role, or every student of a class."""

    user_ids: List[int] = []
    roles: List[Role] = []
    class_ids: List[int] = []


class GroupMembersRemove(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
