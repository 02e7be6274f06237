"""Student-centred views: marks, absences and excuses, assignments, and the latest-by-date feed."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.assignments import service as assignments_service
from classjournal.api.v1.marks import service as marks_service
from classjournal.api.v1.marks.schemas import ExcuseCreate
from classjournal.api.v1.users.service import ensure_can_view_student, get_student, is_parent_of_student
from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import is_admin, is_student
from classjournal.auth.schemas import CurrentUser
from classjournal.core.dates import parse_optional_date
from classjournal.core.exceptions import NotAllowed, NotAStudent
from classjournal.db.session import get_db

from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


async def _ensure_can_excuse(db: AsyncSession, current_user: CurrentUser, student_id: int) -> None:
    """Absences are excused by a parent of the student or an administrator."""
    if is_admin(current_user.role):
        return
    if not await is_parent_of_student(db, student_id, current_user.id):
        raise NotAllowed()


@router.get("/{student_id}/latest")
async def get_latest(
    student_id: int,
    date_from: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD, inclusive"),
    date_until: Optional[str] = Query(None, alias="until", description="YYYY-MM-DD, inclusive"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Marks and lessons of a student grouped by day."""
    start, end = parse_optional_date(date_from), parse_optional_date(date_until)
    await get_student(db, student_id)
    await ensure_can_view_student(db, current_user, student_id)
    return {"latest": await service.latest_by_date(db, student_id, start, end)}


@router.get("/{student_id}/marks")
async def list_marks(
    student_id: int,
    all: bool = Query(False, description="Include superseded and deleted marks"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_student(db, student_id)
    await ensure_can_view_student(db, current_user, student_id)
    return {"marks": await marks_service.list_by_student(db, student_id, current_only=not all)}


@router.get("/{student_id}/journals/{journal_id}/marks")
async def list_marks_for_journal(
    student_id: int,
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_student(db, student_id)
    await ensure_can_view_student(db, current_user, student_id)
    return {"marks": await marks_service.list_by_student_and_journal(db, student_id, journal_id)}


@router.get("/{student_id}/absences")
async def list_absences(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_student(db, student_id)
    await ensure_can_view_student(db, current_user, student_id)
    return {"absences": await marks_service.list_absences_with_excuses(db, student_id)}


@router.post("/{student_id}/excuses", status_code=status.HTTP_201_CREATED)
async def excuse_absence(
    student_id: int,
    payload: ExcuseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_student(db, student_id)
    await _ensure_can_excuse(db, current_user, student_id)
    excuse = await marks_service.attach_excuse(db, student_id, payload.mark_id, payload.excuse, current_user)
    return {"excuse": excuse}


@router.delete("/{student_id}/excuses/{excuse_id}")
async def delete_excuse(
    student_id: int,
    excuse_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_student(db, student_id)
    await _ensure_can_excuse(db, current_user, student_id)
    await marks_service.remove_excuse(db, student_id, excuse_id, current_user)
    return {"message": "excuse removed"}


@router.get("/{student_id}/assignments")
async def list_assignments(
    student_id: int,
    date_from: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD, inclusive"),
    date_until: Optional[str] = Query(None, alias="until", description="YYYY-MM-DD, inclusive"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    start, end = parse_optional_date(date_from), parse_optional_date(date_until)
    await get_student(db, student_id)
    await ensure_can_view_student(db, current_user, student_id)
    return {"assignments": await assignments_service.list_assignments_for_student(db, student_id, start, end)}


async def _ensure_own_assignments(current_user: CurrentUser, student_id: int) -> None:
    """Only the student marks their own assignments done."""
    if current_user.id != student_id:
        raise NotAllowed()
    if not is_student(current_user.role):
        raise NotAStudent()


@router.put("/{student_id}/assignments/{assignment_id}/done")
async def set_assignment_done(
    student_id: int,
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await _ensure_own_assignments(current_user, student_id)
    await assignments_service.set_assignment_done(db, student_id, assignment_id)
    return {"message": "success"}


@router.delete("/{student_id}/assignments/{assignment_id}/done")
async def remove_assignment_done(
    student_id: int,
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await _ensure_own_assignments(current_user, student_id)
    await assignments_service.remove_assignment_done(db, student_id, assignment_id)
    return {"message": "success"}
