from typing import List, Optional

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.auth.rbac import is_admin
from classjournal.auth.schemas import CurrentUser
from classjournal.auth.security import hash_password_async
from classjournal.core.enums import Role
from classjournal.core.exceptions import (
    ClassArchived,
    EditConflict,
    EmailAlreadyExists,
    NoSuchClass,
    NoSuchParentLink,
    NoSuchUser,
    NotAllowed,
    NotAParent,
    NotAStudent,
)
from classjournal.core.models import Journal, JournalStudent, ParentChild, SchoolClass, User
from classjournal.db.filters import LIKE_ESCAPE, contains_pattern
from classjournal.db.session import with_deadline

from .schemas import UserBrief, UserCreate, UserResponse, UserUpdate


def _to_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.strip().lower())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def _check_class_assignable(db: AsyncSession, class_id: int) -> None:
    school_class = await db.get(SchoolClass, class_id)
    if not school_class:
        raise NoSuchClass()
    if school_class.archived:
        raise ClassArchived()


async def _reload(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise NoSuchUser()
    return user


@with_deadline()
async def list_users(db: AsyncSession, archived: bool = False) -> List[UserResponse]:
    result = await db.execute(select(User).where(User.archived.is_(archived)).order_by(User.id.asc()))
    return [_to_response(u) for u in result.scalars().all()]


@with_deadline()
async def search_users(db: AsyncSession, name: str) -> List[UserBrief]:
    """Case-insensitive substring match on name among non-archived users."""
    result = await db.execute(
        select(User)
        .where(User.name.ilike(contains_pattern(name), escape=LIKE_ESCAPE), User.archived.is_(False))
        .order_by(User.name.asc())
    )
    return [UserBrief.model_validate(u) for u in result.scalars().all()]


@with_deadline()
async def get_user(db: AsyncSession, user_id: int) -> UserResponse:
    user = await db.get(User, user_id)
    if not user:
        raise NoSuchUser()
    return _to_response(user)


@with_deadline()
async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


@with_deadline()
async def get_student(db: AsyncSession, student_id: int) -> User:
    """Get a user that must have the student role."""
    user = await db.get(User, student_id)
    if not user:
        raise NoSuchUser()
    if user.role != Role.STUDENT.value:
        raise NotAStudent()
    return user


@with_deadline()
async def is_teacher_or_parent_of_student(db: AsyncSession, student_id: int, viewer: CurrentUser) -> bool:
    """
    True when the viewer may read the student's records: an administrator, the
    student, a linked parent, the teacher of a journal the student belongs to,
    or the teacher of the student's unarchived class.
    """
    if viewer.id == student_id or is_admin(viewer.role):
        return True
    parent = exists().where(ParentChild.child_id == student_id, ParentChild.parent_id == viewer.id)
    journal_teacher = exists().where(
        JournalStudent.user_id == student_id,
        JournalStudent.journal_id == Journal.id,
        Journal.teacher_id == viewer.id,
    )
    class_teacher = exists().where(
        User.id == student_id,
        SchoolClass.id == User.class_id,
        SchoolClass.teacher_id == viewer.id,
        SchoolClass.archived.is_(False),
    )
    result = await db.execute(select(or_(parent, journal_teacher, class_teacher)))
    return bool(result.scalar())


@with_deadline()
async def is_parent_of_student(db: AsyncSession, student_id: int, viewer_id: int) -> bool:
    result = await db.execute(
        select(ParentChild.parent_id).where(
            ParentChild.child_id == student_id, ParentChild.parent_id == viewer_id
        )
    )
    return result.first() is not None


async def ensure_can_view_student(db: AsyncSession, current_user: CurrentUser, student_id: int) -> None:
    if not await is_teacher_or_parent_of_student(db, student_id, current_user):
        raise NotAllowed()


async def create_user(db: AsyncSession, payload: UserCreate, performed_by: Optional[int] = None) -> UserResponse:
    # Hashed outside the database deadline
    password_hash = await hash_password_async(payload.password)
    return await _insert_user(db, payload, password_hash, performed_by)


@with_deadline()
async def _insert_user(
    db: AsyncSession,
    payload: UserCreate,
    password_hash: str,
    performed_by: Optional[int],
) -> UserResponse:
    if await _email_taken(db, payload.email):
        raise EmailAlreadyExists()
    if payload.class_id is not None:
        if payload.role != Role.STUDENT:
            raise NotAStudent()
        await _check_class_assignable(db, payload.class_id)

    user = User(
        name=payload.name.strip(),
        email=payload.email.strip(),
        password_hash=password_hash,
        role=payload.role.value,
        phone_number=payload.phone_number,
        address=payload.address,
        birth_date=payload.birth_date,
        class_id=payload.class_id,
    )
    db.add(user)
    try:
        await db.flush()
        log_audit(db, "create_user", f"users/{user.id}", performed_by=performed_by)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise EmailAlreadyExists()
    return _to_response(await _reload(db, user.id))


async def update_user(
    db: AsyncSession,
    user_id: int,
    payload: UserUpdate,
    performed_by: Optional[int] = None,
) -> UserResponse:
    fields = payload.model_dump(exclude_unset=True, exclude={"version"})
    if "password" in fields:
        fields["password_hash"] = await hash_password_async(fields.pop("password"))
    return await _apply_user_update(db, user_id, payload.version, fields, performed_by)


@with_deadline()
async def _apply_user_update(
    db: AsyncSession,
    user_id: int,
    version: int,
    fields: dict,
    performed_by: Optional[int],
) -> UserResponse:
    existing = await db.get(User, user_id)
    if not existing:
        raise NoSuchUser()

    if "email" in fields:
        fields["email"] = fields["email"].strip()
        if await _email_taken(db, fields["email"], exclude_id=user_id):
            raise EmailAlreadyExists()
    if "name" in fields:
        fields["name"] = fields["name"].strip()
    if "role" in fields:
        fields["role"] = Role(fields["role"]).value
    if fields.get("class_id") is not None:
        if fields.get("role", existing.role) != Role.STUDENT.value:
            raise NotAStudent()
        await _check_class_assignable(db, fields["class_id"])

    stmt = (
        update(User)
        .where(User.id == user_id, User.version == version)
        .values(**fields, version=User.version + 1)
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
        if result.rowcount == 0:
            await db.rollback()
            raise EditConflict()
        log_audit(db, "update_user", f"users/{user_id}", performed_by=performed_by)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise EmailAlreadyExists()
    return _to_response(await _reload(db, user_id))


# ----- Parents and children -----
@with_deadline()
async def add_parent(db: AsyncSession, child_id: int, parent_id: int, performed_by: Optional[int] = None) -> None:
    """Link a parent to a child. Linking twice is a no-op."""
    child = await db.get(User, child_id)
    if not child:
        raise NoSuchUser()
    if child.role != Role.STUDENT.value:
        raise NotAStudent()
    parent = await db.get(User, parent_id)
    if not parent:
        raise NoSuchUser()
    if parent.role != Role.PARENT.value:
        raise NotAParent()

    exists = await db.execute(
        select(ParentChild.parent_id).where(
            ParentChild.parent_id == parent_id, ParentChild.child_id == child_id
        )
    )
    if exists.first() is not None:
        return
    db.add(ParentChild(parent_id=parent_id, child_id=child_id))
    log_audit(db, "add_parent", f"users/{child_id}/parents/{parent_id}", performed_by=performed_by)
    try:
        await db.commit()
    except IntegrityError:
        # Linked concurrently
        await db.rollback()


@with_deadline()
async def remove_parent(db: AsyncSession, child_id: int, parent_id: int, performed_by: Optional[int] = None) -> None:
    result = await db.execute(
        delete(ParentChild).where(ParentChild.parent_id == parent_id, ParentChild.child_id == child_id)
    )
    if result.rowcount == 0:
        raise NoSuchParentLink()
    log_audit(db, "remove_parent", f"users/{child_id}/parents/{parent_id}", performed_by=performed_by)
    await db.commit()


@with_deadline()
async def list_parents(db: AsyncSession, child_id: int) -> List[UserResponse]:
    result = await db.execute(
        select(User)
        .join(ParentChild, ParentChild.parent_id == User.id)
        .where(ParentChild.child_id == child_id)
        .order_by(User.name.asc())
    )
    return [_to_response(u) for u in result.scalars().all()]


@with_deadline()
async def list_children(db: AsyncSession, parent_id: int) -> List[UserBrief]:
    result = await db.execute(
        select(User)
        .join(ParentChild, ParentChild.child_id == User.id)
        .where(ParentChild.parent_id == parent_id)
        .order_by(User.name.asc())
    )
    return [UserBrief.model_validate(u) for u in result.scalars().all()]
