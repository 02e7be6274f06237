from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.journals.service import ensure_can_view_journal, get_journal_row
from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import require_teacher
from classjournal.auth.schemas import CurrentUser
from classjournal.db.session import get_db

from . import service
from .schemas import LessonCreate, LessonUpdate

router = APIRouter(prefix="/api/v1", tags=["lessons"])


@router.post("/lessons", status_code=status.HTTP_201_CREATED)
async def create_lesson(
    payload: LessonCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    return {"lesson": await service.create_lesson(db, payload, current_user)}


@router.get("/lessons/{lesson_id}")
async def get_lesson(
    lesson_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    lesson = await service.get_lesson_row(db, lesson_id)
    await ensure_can_view_journal(db, current_user, lesson.journal)
    return {"lesson": await service.get_lesson(db, lesson_id)}


@router.patch("/lessons/{lesson_id}")
async def update_lesson(
    lesson_id: int,
    payload: LessonUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    """Edit a lesson. The body's `version` must match; a stale version yields 409."""
    return {"lesson": await service.update_lesson(db, lesson_id, payload, current_user)}


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    await service.delete_lesson(db, lesson_id, current_user)
    return {"message": "lesson deleted"}


@router.get("/journals/{journal_id}/lessons")
async def list_lessons(
    journal_id: int,
    course: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    journal = await get_journal_row(db, journal_id)
    await ensure_can_view_journal(db, current_user, journal)
    return {"lessons": await service.list_lessons(db, journal_id, course=course)}
