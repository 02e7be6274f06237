"""Classes API router, including a student's class assignment under /users/{id}/class."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.users.service import ensure_can_view_student
from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import is_admin, require_administrator
from classjournal.auth.schemas import CurrentUser
from classjournal.core.exceptions import NotAllowed
from classjournal.db.session import get_db

from . import service
from .schemas import ClassCreate, ClassUpdate, ClassYearNameSet, StudentClassSet

router = APIRouter(prefix="/api/v1", tags=["classes"])


@router.get("/classes")
async def list_classes(
    archived: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"classes": await service.list_classes(db, archived=archived)}


@router.post("/classes", status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"class": await service.create_class(db, payload, performed_by=current_user.id)}


@router.get("/classes/{class_id}")
async def get_class(
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"class": await service.get_class(db, class_id)}


@router.patch("/classes/{class_id}")
async def update_class(
    class_id: int,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"class": await service.update_class(db, class_id, payload, performed_by=current_user.id)}


@router.get("/classes/{class_id}/users")
async def list_students_in_class(
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Students of a class. Administrators and the class teacher only."""
    if not is_admin(current_user.role) and not await service.is_teacher_of_class(db, current_user.id, class_id):
        raise NotAllowed()
    return {"users": await service.list_students_in_class(db, class_id)}


@router.put("/classes/{class_id}/years/{year_id}")
async def set_class_year_name(
    class_id: int,
    year_id: int,
    payload: ClassYearNameSet,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    await service.set_class_year_name(db, class_id, year_id, payload.display_name, performed_by=current_user.id)
    return {"message": "success"}


@router.get("/users/{user_id}/class")
async def get_class_for_student(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await ensure_can_view_student(db, current_user, user_id)
    return {"class": await service.get_class_for_student(db, user_id)}


@router.put("/users/{user_id}/class")
async def set_class_for_student(
    user_id: int,
    payload: StudentClassSet,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"class": await service.set_class_for_student(db, user_id, payload.class_id, performed_by=current_user.id)}
