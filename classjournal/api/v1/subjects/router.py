from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import require_administrator
from classjournal.auth.schemas import CurrentUser
from classjournal.db.session import get_db

from . import service
from .schemas import SubjectCreate, SubjectUpdate

router = APIRouter(prefix="/api/v1/subjects", tags=["subjects"])


@router.get("", dependencies=[Depends(get_current_user)])
async def list_subjects(db: AsyncSession = Depends(get_db)):
    return {"subjects": await service.list_subjects(db)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"subject": await service.create_subject(db, payload, performed_by=current_user.id)}


@router.get("/{subject_id}", dependencies=[Depends(get_current_user)])
async def get_subject(subject_id: int, db: AsyncSession = Depends(get_db)):
    return {"subject": await service.get_subject(db, subject_id)}


@router.patch("/{subject_id}")
async def update_subject(
    subject_id: int,
    payload: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"subject": await service.update_subject(db, subject_id, payload, performed_by=current_user.id)}
