from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.rbac import require_administrator
from classjournal.db.session import get_db

from . import service
from .service import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api/v1/logs", tags=["logs"])


@router.get("", dependencies=[Depends(require_administrator)])
async def list_logs(
    search: Optional[str] = Query(None, description="Case-insensitive match on actor name or target"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
):
    """Audit log, newest first. Administrator only."""
    return {"result": await service.list_logs(db, page=page, limit=limit, search=search)}
