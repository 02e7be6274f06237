from typing import List, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.api.v1.users.schemas import UserBrief
from classjournal.core.enums import Role
from classjournal.core.exceptions import (
    ClassArchived,
    NoSuchClass,
    NoSuchUser,
    NoSuchYear,
    NotAStudent,
    NotATeacher,
)
from classjournal.core.models import ClassYear, SchoolClass, User, Year
from classjournal.db.session import with_deadline

from .schemas import ClassCreate, ClassResponse, ClassUpdate

TEACHING_ROLES = (Role.TEACHER.value, Role.ADMINISTRATOR.value)


def _class_query():
    """Classes with the display name they carry in the current year."""
    return (
        select(SchoolClass, ClassYear.display_name)
        .select_from(SchoolClass)
        .outerjoin(Year, Year.current.is_(True))
        .outerjoin(
            ClassYear,
            and_(ClassYear.class_id == SchoolClass.id, ClassYear.year_id == Year.id),
        )
    )


def _to_response(school_class: SchoolClass, display_name: Optional[str]) -> ClassResponse:
    return ClassResponse(
        id=school_class.id,
        name=school_class.name,
        teacher_id=school_class.teacher_id,
        archived=school_class.archived,
        display_name=display_name,
    )


async def _check_teacher(db: AsyncSession, teacher_id: int) -> None:
    teacher = await db.get(User, teacher_id)
    if not teacher:
        raise NoSuchUser()
    if teacher.role not in TEACHING_ROLES:
        raise NotATeacher()


async def _load(db: AsyncSession, class_id: int) -> ClassResponse:
    result = await db.execute(
        _class_query().where(SchoolClass.id == class_id).execution_options(populate_existing=True)
    )
    row = result.first()
    if row is None:
        raise NoSuchClass()
    return _to_response(*row)


@with_deadline()
async def list_classes(db: AsyncSession, archived: Optional[bool] = None) -> List[ClassResponse]:
    stmt = _class_query()
    if archived is not None:
        stmt = stmt.where(SchoolClass.archived.is_(archived))
    result = await db.execute(stmt.order_by(SchoolClass.name.asc()))
    return [_to_response(c, name) for c, name in result.all()]


@with_deadline()
async def get_class(db: AsyncSession, class_id: int) -> ClassResponse:
    return await _load(db, class_id)


@with_deadline()
async def create_class(db: AsyncSession, payload: ClassCreate, performed_by: Optional[int] = None) -> ClassResponse:
    if payload.teacher_id is not None:
        await _check_teacher(db, payload.teacher_id)
    school_class = SchoolClass(name=payload.name.strip(), teacher_id=payload.teacher_id)
    db.add(school_class)
    await db.flush()
    log_audit(db, "create_class", f"classes/{school_class.id}", performed_by=performed_by)
    await db.commit()
    return await _load(db, school_class.id)


@with_deadline()
async def update_class(
    db: AsyncSession,
    class_id: int,
    payload: ClassUpdate,
    performed_by: Optional[int] = None,
) -> ClassResponse:
    school_class = await db.get(SchoolClass, class_id)
    if not school_class:
        raise NoSuchClass()

    data = payload.model_dump(exclude_unset=True)
    if data.get("teacher_id") is not None:
        await _check_teacher(db, data["teacher_id"])
    if "name" in data:
        data["name"] = data["name"].strip()
    for k, v in data.items():
        setattr(school_class, k, v)

    log_audit(db, "update_class", f"classes/{class_id}", performed_by=performed_by)
    await db.commit()
    return await _load(db, class_id)


@with_deadline()
async def get_class_for_student(db: AsyncSession, student_id: int) -> Optional[ClassResponse]:
    student = await db.get(User, student_id)
    if not student:
        raise NoSuchUser()
    if student.role != Role.STUDENT.value:
        raise NotAStudent()
    if student.class_id is None:
        return None
    return await _load(db, student.class_id)


@with_deadline()
async def set_class_for_student(
    db: AsyncSession,
    student_id: int,
    class_id: int,
    performed_by: Optional[int] = None,
) -> ClassResponse:
    student = await db.get(User, student_id)
    if not student:
        raise NoSuchUser()
    if student.role != Role.STUDENT.value:
        raise NotAStudent()
    school_class = await db.get(SchoolClass, class_id)
    if not school_class:
        raise NoSuchClass()
    if school_class.archived:
        raise ClassArchived()

    student.class_id = class_id
    log_audit(db, "set_class", f"users/{student_id}/class", performed_by=performed_by)
    await db.commit()
    return await _load(db, class_id)


@with_deadline()
async def list_students_in_class(db: AsyncSession, class_id: int) -> List[UserBrief]:
    if not await db.get(SchoolClass, class_id):
        raise NoSuchClass()
    result = await db.execute(
        select(User)
        .where(
            User.class_id == class_id,
            User.role == Role.STUDENT.value,
            User.archived.is_(False),
        )
        .order_by(User.name.asc())
    )
    return [UserBrief.model_validate(u) for u in result.scalars().all()]


@with_deadline()
async def set_class_year_name(
    db: AsyncSession,
    class_id: int,
    year_id: int,
    display_name: str,
    performed_by: Optional[int] = None,
) -> None:
    """Set (or replace) the name a class carries in a given year."""
    if not await db.get(SchoolClass, class_id):
        raise NoSuchClass()
    if not await db.get(Year, year_id):
        raise NoSuchYear()

    entry = await db.get(ClassYear, (class_id, year_id))
    if entry:
        entry.display_name = display_name.strip()
    else:
        db.add(ClassYear(class_id=class_id, year_id=year_id, display_name=display_name.strip()))
    log_audit(db, "set_class_year_name", f"classes/{class_id}/years/{year_id}", performed_by=performed_by)
    await db.commit()


async def is_teacher_of_class(db: AsyncSession, teacher_id: int, class_id: int) -> bool:
    school_class = await db.get(SchoolClass, class_id)
    return bool(school_class) and school_class.teacher_id == teacher_id
