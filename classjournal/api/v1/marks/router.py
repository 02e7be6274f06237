"""Marks API router: insert, correct (supersede), soft delete, history, per-journal views."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.journals.service import ensure_journal_teacher, get_journal_row
from classjournal.api.v1.users.service import ensure_can_view_student
from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import require_teacher
from classjournal.auth.schemas import CurrentUser
from classjournal.db.session import get_db

from . import service
from .schemas import MarkCorrection, MarkCreate

router = APIRouter(prefix="/api/v1", tags=["marks"])


@router.post("/marks", status_code=status.HTTP_201_CREATED)
async def create_mark(
    payload: MarkCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    return {"mark": await service.insert_mark(db, payload, current_user)}


@router.get("/marks/{mark_id}")
async def get_mark(
    mark_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    mark = await service.get_mark_row(db, mark_id)
    await ensure_can_view_student(db, current_user, mark.user_id)
    return {"mark": await service.get_mark(db, mark_id)}


@router.patch("/marks/{mark_id}")
async def correct_mark(
    mark_id: int,
    payload: MarkCorrection,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    """Replace a current mark. The response is the new mark; the old one stays as history."""
    return {"mark": await service.correct_mark(db, mark_id, payload, current_user)}


@router.delete("/marks/{mark_id}")
async def delete_mark(
    mark_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    return {"mark": await service.delete_mark(db, mark_id, current_user)}


@router.get("/marks/{mark_id}/previous")
async def get_previous_marks(
    mark_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    mark = await service.get_mark_row(db, mark_id)
    await ensure_can_view_student(db, current_user, mark.user_id)
    return {"marks": await service.get_previous_marks(db, mark_id)}


@router.get("/journals/{journal_id}/marks")
async def list_journal_marks(
    journal_id: int,
    all: bool = Query(False, description="Include superseded and deleted marks"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    journal = await get_journal_row(db, journal_id)
    ensure_journal_teacher(current_user, journal)
    return {"marks": await service.list_by_journal(db, journal_id, current_only=not all)}


@router.get("/journals/{journal_id}/matrix")
async def journal_matrix(
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    """Each student of the journal with their current marks."""
    journal = await get_journal_row(db, journal_id)
    ensure_journal_teacher(current_user, journal)
    return {"students": await service.journal_matrix(db, journal_id)}
