from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.journals.service import ensure_can_view_journal, get_journal_row
from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import require_teacher
from classjournal.auth.schemas import CurrentUser
from classjournal.db.session import get_db

from . import service
from .schemas import AssignmentCreate, AssignmentUpdate

router = APIRouter(prefix="/api/v1", tags=["assignments"])


@router.post("/assignments", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: AssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    """Create a homework or test for a journal."""
    return {"assignment": await service.create_assignment(db, payload, current_user)}


@router.get("/assignments/{assignment_id}")
async def get_assignment(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    assignment = await service.get_assignment_row(db, assignment_id)
    await ensure_can_view_journal(db, current_user, assignment.journal)
    return {"assignment": await service.get_assignment(db, assignment_id)}


@router.patch("/assignments/{assignment_id}")
async def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    return {"assignment": await service.update_assignment(db, assignment_id, payload, current_user)}


@router.delete("/assignments/{assignment_id}")
async def delete_assignment(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    await service.delete_assignment(db, assignment_id, current_user)
    return {"message": "assignment deleted"}


@router.get("/journals/{journal_id}/assignments")
async def list_assignments(
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    journal = await get_journal_row(db, journal_id)
    await ensure_can_view_journal(db, current_user, journal)
    return {"assignments": await service.list_assignments(db, journal_id)}
