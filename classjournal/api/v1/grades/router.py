from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import require_administrator
from classjournal.auth.schemas import CurrentUser
from classjournal.db.session import get_db

from . import service
from .schemas import GradeCreate, GradeUpdate

router = APIRouter(prefix="/api/v1/grades", tags=["grades"])


@router.get("", dependencies=[Depends(get_current_user)])
async def list_grades(db: AsyncSession = Depends(get_db)):
    return {"grades": await service.list_grades(db)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_grade(
    payload: GradeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    """Define a grade label and its value. Identifiers are unique."""
    return {"grade": await service.create_grade(db, payload, performed_by=current_user.id)}


@router.get("/{grade_id}", dependencies=[Depends(get_current_user)])
async def get_grade(grade_id: int, db: AsyncSession = Depends(get_db)):
    return {"grade": await service.get_grade(db, grade_id)}


@router.patch("/{grade_id}")
async def update_grade(
    grade_id: int,
    payload: GradeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"grade": await service.update_grade(db, grade_id, payload, performed_by=current_user.id)}
