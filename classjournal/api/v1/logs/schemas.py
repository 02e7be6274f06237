from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class LogUser(BaseModel):
    id: int
    name: str


class LogResponse(BaseModel):
    id: int
    action: str
    target: str
    at: datetime
    user: Optional[LogUser] = None


class LogPage(BaseModel):
    logs: List[LogResponse]
    total: int
    page: int
    limit: int
