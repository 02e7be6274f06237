"""Journals API router: journals, their members, and per-teacher/per-student listings."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.users.service import ensure_can_view_student, get_student
from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import is_admin, require_teacher
from classjournal.auth.schemas import CurrentUser
from classjournal.core.exceptions import NotAllowed
from classjournal.db.session import get_db

from . import service
from .schemas import JournalCreate, JournalMembership, JournalUpdate

router = APIRouter(prefix="/api/v1", tags=["journals"])


@router.get("/journals")
async def list_journals(
    year_id: Optional[int] = Query(None, description="Defaults to the current year"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"journals": await service.list_journals(db, year_id=year_id)}


@router.post("/journals", status_code=status.HTTP_201_CREATED)
async def create_journal(
    payload: JournalCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    return {"journal": await service.create_journal(db, payload, current_user)}


@router.get("/journals/{journal_id}")
async def get_journal(
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    journal = await service.get_journal_row(db, journal_id)
    await service.ensure_can_view_journal(db, current_user, journal)
    return {"journal": await service.get_journal(db, journal_id)}


@router.patch("/journals/{journal_id}")
async def update_journal(
    journal_id: int,
    payload: JournalUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    """Rename, reassign, move to another year, or archive/unarchive a journal."""
    return {"journal": await service.update_journal(db, journal_id, payload, current_user)}


@router.delete("/journals/{journal_id}")
async def delete_journal(
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    await service.delete_journal(db, journal_id, current_user)
    return {"message": "journal deleted"}


@router.get("/journals/{journal_id}/students")
async def list_journal_students(
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    journal = await service.get_journal_row(db, journal_id)
    service.ensure_journal_teacher(current_user, journal)
    return {"students": await service.list_students(db, journal_id)}


@router.get("/teachers/{teacher_id}/journals")
async def list_journals_for_teacher(
    teacher_id: int,
    year_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    if teacher_id != current_user.id and not is_admin(current_user.role):
        raise NotAllowed()
    return {"journals": await service.list_journals_for_teacher(db, teacher_id, year_id=year_id)}


@router.get("/users/{user_id}/journals")
async def list_journals_for_student(
    user_id: int,
    year_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_student(db, user_id)
    await ensure_can_view_student(db, current_user, user_id)
    return {"journals": await service.list_journals_for_student(db, user_id, year_id=year_id)}


@router.post("/users/{user_id}/journals")
async def add_student_to_journal(
    user_id: int,
    payload: JournalMembership,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    await service.add_student(db, payload.journal_id, user_id, current_user)
    return {"message": "student added to journal"}


@router.delete("/users/{user_id}/journals/{journal_id}")
async def remove_student_from_journal(
    user_id: int,
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    await service.remove_student(db, journal_id, user_id, current_user)
    return {"message": "student removed from journal"}
