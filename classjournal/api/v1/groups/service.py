from typing import List, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.api.v1.users.schemas import UserBrief
from classjournal.core.exceptions import (
    GroupArchived,
    NoSuchClass,
    NoSuchGroup,
    NoSuchUser,
    NoSuchUsers,
    UserAlreadyInGroup,
    UserNotInGroup,
)
from classjournal.core.models import Group, GroupUser, SchoolClass, User
from classjournal.db.session import with_deadline

from .schemas import GroupCreate, GroupMembersAdd, GroupResponse, GroupUpdate


async def _get_group_row(db: AsyncSession, group_id: int) -> Group:
    group = await db.get(Group, group_id)
    if not group:
        raise NoSuchGroup()
    return group


async def _get_writable_group(db: AsyncSession, group_id: int) -> Group:
    group = await _get_group_row(db, group_id)
    if group.archived:
        raise GroupArchived()
    return group


async def _check_users_exist(db: AsyncSession, user_ids: List[int]) -> None:
    if not user_ids:
        return
    result = await db.execute(select(User.id).where(User.id.in_(user_ids)))
    missing = sorted(set(user_ids) - set(result.scalars().all()))
    if missing:
        raise NoSuchUsers(f"no such users: {missing}")


async def _member_ids(db: AsyncSession, group_id: int) -> Set[int]:
    result = await db.execute(select(GroupUser.user_id).where(GroupUser.group_id == group_id))
    return set(result.scalars().all())


@with_deadline()
async def list_groups(db: AsyncSession, archived: bool = False) -> List[GroupResponse]:
    result = await db.execute(select(Group).where(Group.archived.is_(archived)).order_by(Group.name.asc()))
    return [GroupResponse.model_validate(g) for g in result.scalars().all()]


@with_deadline()
async def get_group(db: AsyncSession, group_id: int) -> GroupResponse:
    return GroupResponse.model_validate(await _get_group_row(db, group_id))


@with_deadline()
async def create_group(db: AsyncSession, payload: GroupCreate, performed_by: Optional[int] = None) -> GroupResponse:
    group = Group(name=payload.name.strip(), archived=False)
    db.add(group)
    await db.flush()
    log_audit(db, "create_group", f"groups/{group.id}", performed_by=performed_by)
    await db.commit()
    return GroupResponse.model_validate(group)


@with_deadline()
async def update_group(
    db: AsyncSession,
    group_id: int,
    payload: GroupUpdate,
    performed_by: Optional[int] = None,
) -> GroupResponse:
    group = await _get_group_row(db, group_id)
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes:
        group.name = changes["name"].strip()
    if "archived" in changes:
        group.archived = changes["archived"]
    log_audit(db, "update_group", f"groups/{group_id}", performed_by=performed_by)
    await db.commit()
    return GroupResponse.model_validate(group)


@with_deadline()
async def delete_group(db: AsyncSession, group_id: int, performed_by: Optional[int] = None) -> None:
    await _get_group_row(db, group_id)
    await db.execute(delete(GroupUser).where(GroupUser.group_id == group_id))
    await db.execute(delete(Group).where(Group.id == group_id))
    log_audit(db, "delete_group", f"groups/{group_id}", performed_by=performed_by)
    await db.commit()


@with_deadline()
async def list_group_users(db: AsyncSession, group_id: int) -> List[UserBrief]:
    await _get_group_row(db, group_id)
    result = await db.execute(
        select(User)
        .join(GroupUser, GroupUser.user_id == User.id)
        .where(GroupUser.group_id == group_id)
        .order_by(User.name.asc(), User.id.asc())
    )
    return [UserBrief.model_validate(u) for u in result.scalars().all()]


@with_deadline()
async def list_user_groups(db: AsyncSession, user_id: int) -> List[GroupResponse]:
    if not await db.get(User, user_id):
        raise NoSuchUser()
    result = await db.execute(
        select(Group)
        .join(GroupUser, GroupUser.group_id == Group.id)
        .where(GroupUser.user_id == user_id, Group.archived.is_(False))
        .order_by(Group.name.asc())
    )
    return [GroupResponse.model_validate(g) for g in result.scalars().all()]


@with_deadline()
async def add_users(
    db: AsyncSession,
    group_id: int,
    payload: GroupMembersAdd,
    performed_by: Optional[int] = None,
) -> int:
    """Add users to a group and return how many were added.

    Users named in user_ids must not be members yet. Users pulled in through
    roles or classes are added only when missing.
    """
    await _get_writable_group(db, group_id)
    explicit = list(dict.fromkeys(payload.user_ids))
    await _check_users_exist(db, explicit)

    members = await _member_ids(db, group_id)
    if members.intersection(explicit):
        raise UserAlreadyInGroup()

    wanted = list(explicit)
    if payload.class_ids:
        result = await db.execute(select(SchoolClass.id).where(SchoolClass.id.in_(payload.class_ids)))
        missing = sorted(set(payload.class_ids) - set(result.scalars().all()))
        if missing:
            raise NoSuchClass(f"no such class: {missing}")
        result = await db.execute(select(User.id).where(User.class_id.in_(payload.class_ids)).order_by(User.id))
        wanted.extend(result.scalars().all())
    if payload.roles:
        result = await db.execute(
            select(User.id).where(User.role.in_([r.value for r in payload.roles])).order_by(User.id)
        )
        wanted.extend(result.scalars().all())

    added = 0
    for user_id in dict.fromkeys(wanted):
        if user_id in members:
            continue
        db.add(GroupUser(group_id=group_id, user_id=user_id))
        members.add(user_id)
        added += 1
    log_audit(db, "add_users_to_group", f"groups/{group_id}", performed_by=performed_by)
    await db.commit()
    return added


@with_deadline()
async def remove_users(
    db: AsyncSession,
    group_id: int,
    user_ids: List[int],
    performed_by: Optional[int] = None,
) -> None:
    await _get_writable_group(db, group_id)
    user_ids = list(dict.fromkeys(user_ids))
    await _check_users_exist(db, user_ids)
    members = await _member_ids(db, group_id)
    if not members.issuperset(user_ids):
        raise UserNotInGroup()
    await db.execute(
        delete(GroupUser).where(GroupUser.group_id == group_id, GroupUser.user_id.in_(user_ids))
    )
    log_audit(db, "remove_users_from_group", f"groups/{group_id}", performed_by=performed_by)
    await db.commit()
