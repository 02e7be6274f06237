from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import require_administrator
from classjournal.auth.schemas import CurrentUser
from classjournal.db.session import get_db

from . import service
from .schemas import YearCreate

router = APIRouter(prefix="/api/v1/years", tags=["years"])


@router.get("", dependencies=[Depends(get_current_user)])
async def list_years(
    stats: bool = Query(False, description="Include journal and student counts"),
    db: AsyncSession = Depends(get_db),
):
    if stats:
        return {"years": await service.list_years_with_stats(db)}
    return {"years": await service.list_years(db)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_year(
    payload: YearCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"year": await service.insert_year(db, payload, performed_by=current_user.id)}


@router.get("/current", dependencies=[Depends(get_current_user)])
async def get_current_year(db: AsyncSession = Depends(get_db)):
    return {"year": await service.get_current_year(db)}


@router.get("/{year_id}", dependencies=[Depends(get_current_user)])
async def get_year(year_id: int, db: AsyncSession = Depends(get_db)):
    return {"year": await service.get_year(db, year_id)}


@router.put("/{year_id}/current")
async def set_current_year(
    year_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    """Make this the current year; the previous current year is cleared."""
    return {"year": await service.set_current_year(db, year_id, performed_by=current_user.id)}
