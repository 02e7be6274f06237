from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    id: int
    user_id: int
    expires: datetime
    login_ip: Optional[str] = None
    login_browser: Optional[str] = None
    logged_in: datetime
    last_seen: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Returned once at login; `token` is never shown again."""

    token: str
    session: SessionResponse


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: int
    name: str
    role: str
    session_id: int

    @property
    def is_admin(self) -> bool:
        return self.role == "administrator"
