from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.api.v1.users.schemas import UserBrief
from classjournal.auth.rbac import is_admin, is_parent, is_student
from classjournal.auth.schemas import CurrentUser
from classjournal.core.dates import utcnow
from classjournal.core.enums import Role
from classjournal.core.exceptions import (
    JournalArchived,
    NoSuchJournal,
    NoSuchSubject,
    NoSuchUser,
    NoSuchYear,
    NotAllowed,
    NotAStudent,
    NotATeacher,
    UserNotInJournal,
)
from classjournal.core.models import Journal, JournalStudent, Lesson, ParentChild, Subject, User, Year
from classjournal.db.session import with_deadline

from .schemas import (
    JournalCreate,
    JournalResponse,
    JournalSubject,
    JournalTeacher,
    JournalUpdate,
    JournalYear,
)

TEACHING_ROLES = (Role.TEACHER.value, Role.ADMINISTRATOR.value)


def _to_response(journal: Journal, courses: Optional[List[int]] = None) -> JournalResponse:
    return JournalResponse(
        id=journal.id,
        name=journal.name,
        teacher=JournalTeacher(id=journal.teacher.id, name=journal.teacher.name),
        subject=JournalSubject(id=journal.subject.id, name=journal.subject.name),
        year=JournalYear(id=journal.year.id, display_name=journal.year.display_name, courses=journal.year.courses),
        archived=journal.archived,
        last_updated=journal.last_updated,
        courses=courses or [],
    )


async def _courses_for(db: AsyncSession, journal_ids: Iterable[int]) -> Dict[int, List[int]]:
    """Distinct lesson course numbers per journal."""
    ids = list(journal_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Lesson.journal_id, Lesson.course)
        .where(Lesson.journal_id.in_(ids))
        .distinct()
        .order_by(Lesson.journal_id, Lesson.course)
    )
    courses: Dict[int, List[int]] = {}
    for journal_id, course in result.all():
        courses.setdefault(journal_id, []).append(course)
    return courses


async def _to_responses(db: AsyncSession, journals: List[Journal]) -> List[JournalResponse]:
    courses = await _courses_for(db, (j.id for j in journals))
    return [_to_response(j, courses.get(j.id)) for j in journals]


async def _resolve_year_id(db: AsyncSession, year_id: Optional[int]) -> int:
    if year_id is not None:
        if not await db.get(Year, year_id):
            raise NoSuchYear()
        return year_id
    result = await db.execute(select(Year.id).where(Year.current.is_(True)))
    current = result.scalar_one_or_none()
    if current is None:
        raise NoSuchYear("no current year set")
    return current


async def _check_teacher(db: AsyncSession, teacher_id: int) -> None:
    teacher = await db.get(User, teacher_id)
    if not teacher:
        raise NoSuchUser()
    if teacher.role not in TEACHING_ROLES:
        raise NotATeacher()


async def get_journal_row(db: AsyncSession, journal_id: int) -> Journal:
    """Load the journal entity fresh from the database. Raises NoSuchJournal."""
    result = await db.execute(
        select(Journal).where(Journal.id == journal_id).execution_options(populate_existing=True)
    )
    journal = result.scalar_one_or_none()
    if not journal:
        raise NoSuchJournal()
    return journal


async def get_writable_journal(db: AsyncSession, journal_id: int) -> Journal:
    journal = await get_journal_row(db, journal_id)
    if journal.archived:
        raise JournalArchived()
    return journal


async def is_student_in_journal(db: AsyncSession, student_id: int, journal_id: int) -> bool:
    result = await db.execute(
        select(JournalStudent.user_id).where(
            JournalStudent.journal_id == journal_id, JournalStudent.user_id == student_id
        )
    )
    return result.first() is not None


async def touch(db: AsyncSession, journal_id: int) -> None:
    """Bump last_updated. Caller must commit."""
    await db.execute(
        update(Journal)
        .where(Journal.id == journal_id)
        .values(last_updated=utcnow())
        .execution_options(synchronize_session=False)
    )


def ensure_journal_teacher(current_user: CurrentUser, journal: Journal) -> None:
    """Only the journal's teacher and administrators may change a journal's contents."""
    if journal.teacher_id != current_user.id and not is_admin(current_user.role):
        raise NotAllowed()


async def ensure_can_view_journal(db: AsyncSession, current_user: CurrentUser, journal: Journal) -> None:
    if journal.teacher_id == current_user.id or is_admin(current_user.role):
        return
    if is_student(current_user.role) and await is_student_in_journal(db, current_user.id, journal.id):
        return
    if is_parent(current_user.role):
        result = await db.execute(
            select(ParentChild.child_id)
            .join(JournalStudent, JournalStudent.user_id == ParentChild.child_id)
            .where(ParentChild.parent_id == current_user.id, JournalStudent.journal_id == journal.id)
        )
        if result.first() is not None:
            return
    raise NotAllowed()


@with_deadline()
async def list_journals(db: AsyncSession, year_id: Optional[int] = None) -> List[JournalResponse]:
    """All journals of a year; the current year when none is given."""
    year_id = await _resolve_year_id(db, year_id)
    result = await db.execute(
        select(Journal).where(Journal.year_id == year_id).order_by(Journal.name.asc(), Journal.id.asc())
    )
    return await _to_responses(db, list(result.scalars().all()))


@with_deadline()
async def get_journal(db: AsyncSession, journal_id: int) -> JournalResponse:
    journal = await get_journal_row(db, journal_id)
    courses = await _courses_for(db, [journal_id])
    return _to_response(journal, courses.get(journal_id))


@with_deadline()
async def create_journal(db: AsyncSession, payload: JournalCreate, current_user: CurrentUser) -> JournalResponse:
    teacher_id = payload.teacher_id if payload.teacher_id is not None else current_user.id
    if teacher_id != current_user.id and not is_admin(current_user.role):
        raise NotAllowed()
    await _check_teacher(db, teacher_id)
    if not await db.get(Subject, payload.subject_id):
        raise NoSuchSubject()
    year_id = await _resolve_year_id(db, payload.year_id)

    journal = Journal(
        name=payload.name.strip(),
        teacher_id=teacher_id,
        subject_id=payload.subject_id,
        year_id=year_id,
        last_updated=utcnow(),
    )
    db.add(journal)
    await db.flush()
    log_audit(db, "create_journal", f"journals/{journal.id}", performed_by=current_user.id)
    await db.commit()
    return _to_response(await get_journal_row(db, journal.id))


@with_deadline()
async def update_journal(
    db: AsyncSession,
    journal_id: int,
    payload: JournalUpdate,
    current_user: CurrentUser,
) -> JournalResponse:
    journal = await get_journal_row(db, journal_id)
    ensure_journal_teacher(current_user, journal)

    data = payload.model_dump(exclude_unset=True)
    if "teacher_id" in data:
        await _check_teacher(db, data["teacher_id"])
    if "subject_id" in data and not await db.get(Subject, data["subject_id"]):
        raise NoSuchSubject()
    if "year_id" in data and not await db.get(Year, data["year_id"]):
        raise NoSuchYear()
    if "name" in data:
        data["name"] = data["name"].strip()

    await db.execute(
        update(Journal)
        .where(Journal.id == journal_id)
        .values(**data, last_updated=utcnow())
        .execution_options(synchronize_session=False)
    )
    log_audit(db, "update_journal", f"journals/{journal_id}", performed_by=current_user.id)
    await db.commit()

    journal = await get_journal_row(db, journal_id)
    courses = await _courses_for(db, [journal_id])
    return _to_response(journal, courses.get(journal_id))


@with_deadline()
async def delete_journal(db: AsyncSession, journal_id: int, current_user: CurrentUser) -> None:
    """Hard delete. Lessons, assignments, marks and memberships go with it."""
    journal = await get_journal_row(db, journal_id)
    ensure_journal_teacher(current_user, journal)
    await db.execute(delete(Journal).where(Journal.id == journal_id))
    log_audit(db, "delete_journal", f"journals/{journal_id}", performed_by=current_user.id)
    await db.commit()


@with_deadline()
async def list_journals_for_teacher(
    db: AsyncSession, teacher_id: int, year_id: Optional[int] = None
) -> List[JournalResponse]:
    year_id = await _resolve_year_id(db, year_id)
    result = await db.execute(
        select(Journal)
        .where(Journal.teacher_id == teacher_id, Journal.year_id == year_id)
        .order_by(Journal.name.asc(), Journal.id.asc())
    )
    return await _to_responses(db, list(result.scalars().all()))


@with_deadline()
async def list_journals_for_student(
    db: AsyncSession, student_id: int, year_id: Optional[int] = None
) -> List[JournalResponse]:
    year_id = await _resolve_year_id(db, year_id)
    result = await db.execute(
        select(Journal)
        .join(JournalStudent, JournalStudent.journal_id == Journal.id)
        .join(Subject, Subject.id == Journal.subject_id)
        .where(JournalStudent.user_id == student_id, Journal.year_id == year_id)
        .order_by(Subject.name.asc(), Journal.id.asc())
    )
    return await _to_responses(db, list(result.scalars().all()))


@with_deadline()
async def add_student(db: AsyncSession, journal_id: int, student_id: int, current_user: CurrentUser) -> None:
    """Add a student to a journal. Adding a member again is a no-op."""
    journal = await get_journal_row(db, journal_id)
    ensure_journal_teacher(current_user, journal)
    if journal.archived:
        raise JournalArchived()
    student = await db.get(User, student_id)
    if not student:
        raise NoSuchUser()
    if student.role != Role.STUDENT.value:
        raise NotAStudent()
    if await is_student_in_journal(db, student_id, journal_id):
        return

    db.add(JournalStudent(journal_id=journal_id, user_id=student_id))
    log_audit(db, "add_student_to_journal", f"journals/{journal_id}/students/{student_id}", performed_by=current_user.id)
    await db.commit()


@with_deadline()
async def remove_student(db: AsyncSession, journal_id: int, student_id: int, current_user: CurrentUser) -> None:
    journal = await get_journal_row(db, journal_id)
    ensure_journal_teacher(current_user, journal)
    result = await db.execute(
        delete(JournalStudent).where(
            JournalStudent.journal_id == journal_id, JournalStudent.user_id == student_id
        )
    )
    if result.rowcount == 0:
        raise UserNotInJournal()
    log_audit(
        db, "remove_student_from_journal", f"journals/{journal_id}/students/{student_id}", performed_by=current_user.id
    )
    await db.commit()


@with_deadline()
async def list_students(db: AsyncSession, journal_id: int) -> List[UserBrief]:
    await get_journal_row(db, journal_id)
    result = await db.execute(
        select(User)
        .join(JournalStudent, JournalStudent.user_id == User.id)
        .where(JournalStudent.journal_id == journal_id)
        .order_by(User.name.asc())
    )
    return [UserBrief.model_validate(u) for u in result.scalars().all()]
