from datetime import date
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.journals.service import (
    ensure_journal_teacher,
    get_journal_row,
    get_writable_journal,
)
from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.auth.schemas import CurrentUser
from classjournal.core.dates import utcnow
from classjournal.core.exceptions import EditConflict, InvalidCourse, JournalArchived, NoSuchLesson
from classjournal.core.models import Journal, JournalStudent, Lesson
from classjournal.db.session import with_deadline

from .schemas import LessonCreate, LessonJournal, LessonResponse, LessonSubject, LessonUpdate


def _to_response(lesson: Lesson) -> LessonResponse:
    journal = lesson.journal
    return LessonResponse(
        id=lesson.id,
        journal=LessonJournal(id=journal.id, name=journal.name, archived=journal.archived),
        subject=LessonSubject(id=journal.subject.id, name=journal.subject.name),
        description=lesson.description,
        date=lesson.date,
        course=lesson.course,
        created_at=lesson.created_at,
        updated_at=lesson.updated_at,
        version=lesson.version,
    )


def check_course(journal: Journal, course: int) -> None:
    """Course must fall within 1..courses of the journal's year."""
    if course < 1 or course > journal.year.courses:
        raise InvalidCourse()


async def get_lesson_row(db: AsyncSession, lesson_id: int) -> Lesson:
    result = await db.execute(
        select(Lesson).where(Lesson.id == lesson_id).execution_options(populate_existing=True)
    )
    lesson = result.scalar_one_or_none()
    if not lesson:
        raise NoSuchLesson()
    return lesson


@with_deadline()
async def create_lesson(db: AsyncSession, payload: LessonCreate, current_user: CurrentUser) -> LessonResponse:
    journal = await get_journal_row(db, payload.journal_id)
    ensure_journal_teacher(current_user, journal)
    if journal.archived:
        raise JournalArchived()
    check_course(journal, payload.course)

    now = utcnow()
    lesson = Lesson(
        journal_id=journal.id,
        description=payload.description,
        date=payload.date,
        course=payload.course,
        created_at=now,
        updated_at=now,
    )
    db.add(lesson)
    await db.flush()
    log_audit(db, "create_lesson", f"lessons/{lesson.id}", performed_by=current_user.id)
    await db.commit()
    return _to_response(await get_lesson_row(db, lesson.id))


@with_deadline()
async def get_lesson(db: AsyncSession, lesson_id: int) -> LessonResponse:
    return _to_response(await get_lesson_row(db, lesson_id))


@with_deadline()
async def update_lesson(
    db: AsyncSession,
    lesson_id: int,
    payload: LessonUpdate,
    current_user: CurrentUser,
) -> LessonResponse:
    """Apply a partial update if `payload.version` still matches; otherwise EditConflict."""
    lesson = await get_lesson_row(db, lesson_id)
    journal = await get_writable_journal(db, lesson.journal_id)
    ensure_journal_teacher(current_user, journal)

    data = payload.model_dump(exclude_unset=True, exclude={"version"})
    if "course" in data:
        check_course(journal, data["course"])

    result = await db.execute(
        update(Lesson)
        .where(Lesson.id == lesson_id, Lesson.version == payload.version)
        .values(**data, updated_at=utcnow(), version=Lesson.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise EditConflict()
    log_audit(db, "update_lesson", f"lessons/{lesson_id}", performed_by=current_user.id)
    await db.commit()
    return _to_response(await get_lesson_row(db, lesson_id))


@with_deadline()
async def delete_lesson(db: AsyncSession, lesson_id: int, current_user: CurrentUser) -> None:
    """Hard delete; the lesson's marks go with it."""
    lesson = await get_lesson_row(db, lesson_id)
    journal = await get_writable_journal(db, lesson.journal_id)
    ensure_journal_teacher(current_user, journal)
    await db.execute(delete(Lesson).where(Lesson.id == lesson_id))
    log_audit(db, "delete_lesson", f"lessons/{lesson_id}", performed_by=current_user.id)
    await db.commit()


@with_deadline()
async def list_lessons(db: AsyncSession, journal_id: int, course: Optional[int] = None) -> List[LessonResponse]:
    """Lessons of a journal, newest first; optionally one course only."""
    await get_journal_row(db, journal_id)
    stmt = select(Lesson).where(Lesson.journal_id == journal_id)
    if course is not None:
        stmt = stmt.where(Lesson.course == course)
    result = await db.execute(stmt.order_by(Lesson.date.desc(), Lesson.id.desc()))
    return [_to_response(lesson) for lesson in result.scalars().all()]


@with_deadline()
async def list_latest_for_student(
    db: AsyncSession,
    student_id: int,
    date_from: Optional[date] = None,
    date_until: Optional[date] = None,
) -> List[LessonResponse]:
    """Lessons of the student's journals dated within [date_from, date_until], newest first."""
    stmt = (
        select(Lesson)
        .join(JournalStudent, JournalStudent.journal_id == Lesson.journal_id)
        .where(JournalStudent.user_id == student_id)
    )
    if date_from is not None:
        stmt = stmt.where(Lesson.date >= date_from)
    if date_until is not None:
        stmt = stmt.where(Lesson.date <= date_until)
    result = await db.execute(stmt.order_by(Lesson.date.desc(), Lesson.id.desc()))
    return [_to_response(lesson) for lesson in result.scalars().all()]
