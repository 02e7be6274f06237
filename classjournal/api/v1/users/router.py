"""Users API router: accounts and parent/child links."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import is_admin, require_administrator
from classjournal.auth.schemas import CurrentUser
from classjournal.core.exceptions import NotAllowed
from classjournal.db.session import get_db

from . import service
from .schemas import ParentLink, UserCreate, UserUpdate

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("")
async def list_users(
    archived: bool = Query(False, description="List archived users instead of active ones"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"users": await service.list_users(db, archived=archived)}


@router.get("/search")
async def search_users(
    name: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"users": await service.search_users(db, name)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    """Create an account. Administrator only."""
    return {"user": await service.create_user(db, payload, performed_by=current_user.id)}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"user": await service.get_user(db, user_id)}


@router.patch("/{user_id}")
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    """Partial update guarded by `version`; a stale version yields 409."""
    return {"user": await service.update_user(db, user_id, payload, performed_by=current_user.id)}


@router.get("/{user_id}/parents")
async def list_parents(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await service.get_student(db, user_id)
    await service.ensure_can_view_student(db, current_user, user_id)
    return {"parents": await service.list_parents(db, user_id)}


@router.post("/{user_id}/parents")
async def add_parent(
    user_id: int,
    payload: ParentLink,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    await service.add_parent(db, user_id, payload.parent_id, performed_by=current_user.id)
    return {"message": "parent added"}


@router.delete("/{user_id}/parents/{parent_id}")
async def remove_parent(
    user_id: int,
    parent_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    await service.remove_parent(db, user_id, parent_id, performed_by=current_user.id)
    return {"message": "parent removed"}


@router.get("/{user_id}/children")
async def list_children(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    if current_user.id != user_id and not is_admin(current_user.role):
        raise NotAllowed()
    return {"children": await service.list_children(db, user_id)}
