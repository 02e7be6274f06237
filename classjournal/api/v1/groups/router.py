from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.dependencies import get_current_user
from classjournal.auth.rbac import is_admin, require_administrator
from classjournal.auth.schemas import CurrentUser
from classjournal.core.exceptions import NotAllowed
from classjournal.db.session import get_db

from . import service
from .schemas import GroupCreate, GroupMembersAdd, GroupMembersRemove, GroupUpdate

router = APIRouter(prefix="/api/v1", tags=["groups"])


@router.get("/groups", dependencies=[Depends(get_current_user)])
async def list_groups(
    archived: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return {"groups": await service.list_groups(db, archived)}


@router.post("/groups", status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: GroupCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"group": await service.create_group(db, payload, performed_by=current_user.id)}


@router.get("/groups/{group_id}", dependencies=[Depends(get_current_user)])
async def get_group(group_id: int, db: AsyncSession = Depends(get_db)):
    return {"group": await service.get_group(db, group_id)}


@router.patch("/groups/{group_id}")
async def update_group(
    group_id: int,
    payload: GroupUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    return {"group": await service.update_group(db, group_id, payload, performed_by=current_user.id)}


@router.delete("/groups/{group_id}")
async def delete_group(
    group_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    await service.delete_group(db, group_id, performed_by=current_user.id)
    return {"message": "group deleted"}


@router.get("/groups/{group_id}/users", dependencies=[Depends(get_current_user)])
async def list_group_users(group_id: int, db: AsyncSession = Depends(get_db)):
    return {"users": await service.list_group_users(db, group_id)}


@router.post("/groups/{group_id}/users")
async def add_users(
    group_id: int,
    payload: GroupMembersAdd,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    added = await service.add_users(db, group_id, payload, performed_by=current_user.id)
    return {"message": f"{added} users added"}


@router.delete("/groups/{group_id}/users")
async def remove_users(
    group_id: int,
    payload: GroupMembersRemove = Body(...),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_administrator),
):
    await service.remove_users(db, group_id, payload.user_ids, performed_by=current_user.id)
    return {"message": "users removed"}


@router.get("/users/{user_id}/groups")
async def list_user_groups(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    if not is_admin(current_user.role) and current_user.id != user_id:
        raise NotAllowed()
    return {"groups": await service.list_user_groups(db, user_id)}
