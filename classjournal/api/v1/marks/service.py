"""Mark engine.

Marks are append-only records. A correction supersedes the current mark: the
old row is flipped to current=false and a new row is inserted whose
previous_ids is the old row's previous_ids plus the old id, both in one
transaction. A deletion only flips current=false, deleted=true. A chain
therefore holds at most one row that is current and not deleted.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.journals.service import (
    ensure_journal_teacher,
    get_journal_row,
    is_student_in_journal,
    list_students,
    touch,
)
from classjournal.api.v1.lessons.service import check_course, get_lesson_row
from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.auth.schemas import CurrentUser
from classjournal.core.dates import end_of_day, start_of_day, utcnow
from classjournal.core.enums import (
    GRADED_MARK_TYPES,
    LESSON_MARK_TYPES,
    NOTICE_MARK_TYPES,
    SINGULAR_LESSON_MARK_TYPES,
    MarkType,
    Role,
)
from classjournal.core.exceptions import (
    AbsenceExcused,
    InvalidMarkTarget,
    JournalArchived,
    MarkAlreadyExists,
    MarkDeleted,
    MarkNotCurrent,
    NoSuchExcuse,
    NoSuchGrade,
    NoSuchMark,
    NoSuchSubject,
    NoSuchUser,
    NotAStudent,
    NotValidAbsence,
    UserNotInJournal,
)
from classjournal.core.models import AbsenceExcuse, Grade, Journal, Lesson, Mark, Subject, User
from classjournal.db.session import with_deadline

from .schemas import (
    ExcuseResponse,
    JournalMatrixRow,
    MarkAuthor,
    MarkCorrection,
    MarkCreate,
    MarkGrade,
    MarkJournal,
    MarkLesson,
    MarkResponse,
    MarkSubject,
)

logger = logging.getLogger(__name__)


def _excuse_to_response(excuse: AbsenceExcuse) -> ExcuseResponse:
    return ExcuseResponse(
        id=excuse.id,
        mark_id=excuse.mark_id,
        excuse=excuse.excuse,
        by=MarkAuthor(id=excuse.by.id, name=excuse.by.name),
        at=excuse.at,
    )


def _to_response(mark: Mark) -> MarkResponse:
    lesson = mark.lesson
    journal = mark.journal
    return MarkResponse(
        id=mark.id,
        user_id=mark.user_id,
        type=mark.type,
        lesson=MarkLesson(id=lesson.id, date=lesson.date, course=lesson.course, description=lesson.description)
        if lesson
        else None,
        course=mark.course,
        journal=MarkJournal(
            id=journal.id,
            name=journal.name,
            subject_id=journal.subject.id,
            subject_name=journal.subject.name,
        )
        if journal
        else None,
        subject=MarkSubject(id=mark.subject.id, name=mark.subject.name) if mark.subject else None,
        grade=MarkGrade(id=mark.grade.id, identifier=mark.grade.identifier, value=mark.grade.value)
        if mark.grade
        else None,
        comment=mark.comment,
        current=mark.current,
        deleted=mark.deleted,
        previous_ids=list(mark.previous_ids or []),
        by=MarkAuthor(id=mark.by.id, name=mark.by.name),
        at=mark.at,
        updated_at=mark.updated_at,
        excuse=_excuse_to_response(mark.excuse) if mark.excuse else None,
    )


def _target_kind(mark_type: MarkType) -> str:
    if mark_type in LESSON_MARK_TYPES:
        return "lesson"
    if mark_type in NOTICE_MARK_TYPES:
        return "notice"
    return mark_type.value


async def get_mark_row(db: AsyncSession, mark_id: int) -> Mark:
    result = await db.execute(select(Mark).where(Mark.id == mark_id).execution_options(populate_existing=True))
    mark = result.scalar_one_or_none()
    if not mark:
        raise NoSuchMark()
    return mark


async def _check_grade(db: AsyncSession, mark_type: MarkType, grade_id: Optional[int]) -> None:
    if mark_type in GRADED_MARK_TYPES:
        if grade_id is None:
            raise InvalidMarkTarget("grade must be provided for this mark type")
        if not await db.get(Grade, grade_id):
            raise NoSuchGrade()
    elif grade_id is not None:
        raise InvalidMarkTarget("grade not allowed for this mark type")


async def _resolve_target(db: AsyncSession, payload: MarkCreate) -> Dict:
    """Check the target fields against the mark type; return the columns to store and the journal."""
    mark_type = payload.type
    kind = _target_kind(mark_type)
    lesson: Optional[Lesson] = None

    if kind == "lesson":
        if payload.lesson_id is None or payload.subject_id is not None:
            raise InvalidMarkTarget("lesson must be provided for this mark type")
        lesson = await get_lesson_row(db, payload.lesson_id)
        journal = lesson.journal
        target = {"lesson_id": lesson.id, "journal_id": journal.id, "course": lesson.course, "subject_id": None}

    elif kind == "course_grade":
        if payload.journal_id is None or payload.course is None or payload.lesson_id is not None or payload.subject_id is not None:
            raise InvalidMarkTarget("journal and course must be provided for course grades")
        journal = await get_journal_row(db, payload.journal_id)
        check_course(journal, payload.course)
        target = {"lesson_id": None, "journal_id": journal.id, "course": payload.course, "subject_id": None}

    elif kind == "subject_grade":
        if payload.journal_id is None or payload.lesson_id is not None or payload.course is not None:
            raise InvalidMarkTarget("journal must be provided for subject grades")
        journal = await get_journal_row(db, payload.journal_id)
        subject_id = payload.subject_id if payload.subject_id is not None else journal.subject_id
        if not await db.get(Subject, subject_id):
            raise NoSuchSubject()
        target = {"lesson_id": None, "journal_id": journal.id, "course": None, "subject_id": subject_id}

    else:
        if payload.subject_id is not None or (payload.journal_id is None and payload.lesson_id is None):
            raise InvalidMarkTarget("journal or lesson must be provided for notices")
        if payload.lesson_id is not None:
            lesson = await get_lesson_row(db, payload.lesson_id)
            journal = lesson.journal
            if payload.journal_id is not None and payload.journal_id != journal.id:
                raise InvalidMarkTarget("lesson does not belong to the journal")
            target = {"lesson_id": lesson.id, "journal_id": journal.id, "course": lesson.course, "subject_id": None}
        else:
            journal = await get_journal_row(db, payload.journal_id)
            target = {"lesson_id": None, "journal_id": journal.id, "course": None, "subject_id": None}

    target["journal"] = journal
    return target


async def _check_singular(
    db: AsyncSession,
    student_id: int,
    lesson_id: Optional[int],
    mark_type: MarkType,
    exclude_id: Optional[int] = None,
) -> None:
    """At most one current absent/late/not_done per student and lesson."""
    if mark_type not in SINGULAR_LESSON_MARK_TYPES or lesson_id is None:
        return
    stmt = select(Mark.id).where(
        Mark.user_id == student_id,
        Mark.lesson_id == lesson_id,
        Mark.type == mark_type.value,
        Mark.current.is_(True),
        Mark.deleted.is_(False),
    )
    if exclude_id is not None:
        stmt = stmt.where(Mark.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise MarkAlreadyExists()


async def _raise_for_stale(db: AsyncSession, mark_id: int) -> None:
    """The conditional update touched nothing: report why."""
    logger.info("mark %s changed concurrently", mark_id)
    mark = await get_mark_row(db, mark_id)
    if mark.deleted:
        raise MarkDeleted()
    raise MarkNotCurrent()


async def _reload(db: AsyncSession, mark_id: int) -> MarkResponse:
    return _to_response(await get_mark_row(db, mark_id))


# ----- Writes -----
@with_deadline()
async def insert_mark(db: AsyncSession, payload: MarkCreate, current_user: CurrentUser) -> MarkResponse:
    student = await db.get(User, payload.user_id)
    if not student:
        raise NoSuchUser()
    if student.role != Role.STUDENT.value:
        raise NotAStudent()

    target = await _resolve_target(db, payload)
    journal: Journal = target.pop("journal")
    ensure_journal_teacher(current_user, journal)
    if journal.archived:
        raise JournalArchived()
    if not await is_student_in_journal(db, student.id, journal.id):
        raise UserNotInJournal()
    await _check_grade(db, payload.type, payload.grade_id)
    await _check_singular(db, student.id, target["lesson_id"], payload.type)

    now = utcnow()
    mark = Mark(
        user_id=student.id,
        type=payload.type.value,
        grade_id=payload.grade_id,
        comment=payload.comment,
        current=True,
        deleted=False,
        previous_ids=[],
        by_id=current_user.id,
        at=now,
        updated_at=now,
        **target,
    )
    db.add(mark)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise MarkAlreadyExists()
    await touch(db, journal.id)
    log_audit(db, "create_mark", f"marks/{mark.id}", performed_by=current_user.id)
    await db.commit()
    return await _reload(db, mark.id)


@with_deadline()
async def correct_mark(
    db: AsyncSession,
    mark_id: int,
    payload: MarkCorrection,
    current_user: CurrentUser,
) -> MarkResponse:
    """Supersede a current mark with a corrected copy. Returns the new mark."""
    old = await get_mark_row(db, mark_id)
    if old.deleted:
        raise MarkDeleted()
    if not old.current:
        raise MarkNotCurrent()

    journal = await get_journal_row(db, old.journal_id)
    ensure_journal_teacher(current_user, journal)
    if journal.archived:
        raise JournalArchived()

    changes = payload.model_dump(exclude_unset=True)
    old_type = MarkType(old.type)
    new_type = changes.get("type") or old_type
    if _target_kind(new_type) != _target_kind(old_type):
        raise InvalidMarkTarget("mark type cannot move to a different kind of target")

    if "grade_id" in changes:
        grade_id = changes["grade_id"]
    elif new_type in GRADED_MARK_TYPES:
        grade_id = old.grade_id
    else:
        grade_id = None
    await _check_grade(db, new_type, grade_id)
    await _check_singular(db, old.user_id, old.lesson_id, new_type, exclude_id=old.id)

    now = utcnow()
    result = await db.execute(
        update(Mark)
        .where(Mark.id == old.id, Mark.current.is_(True), Mark.deleted.is_(False))
        .values(current=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        await _raise_for_stale(db, mark_id)

    replacement = Mark(
        user_id=old.user_id,
        type=new_type.value,
        lesson_id=old.lesson_id,
        course=old.course,
        journal_id=old.journal_id,
        subject_id=old.subject_id,
        grade_id=grade_id,
        comment=changes["comment"] if "comment" in changes else old.comment,
        current=True,
        deleted=False,
        previous_ids=list(old.previous_ids or []) + [old.id],
        by_id=current_user.id,
        at=now,
        updated_at=now,
    )
    db.add(replacement)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise MarkAlreadyExists()
    if old_type == MarkType.ABSENT and new_type == MarkType.ABSENT:
        # The excuse follows the absence to its current row.
        await db.execute(
            update(AbsenceExcuse)
            .where(AbsenceExcuse.mark_id == old.id)
            .values(mark_id=replacement.id)
            .execution_options(synchronize_session=False)
        )
    await touch(db, journal.id)
    log_audit(db, "correct_mark", f"marks/{old.id} -> marks/{replacement.id}", performed_by=current_user.id)
    await db.commit()
    return await _reload(db, replacement.id)


@with_deadline()
async def delete_mark(db: AsyncSession, mark_id: int, current_user: CurrentUser) -> MarkResponse:
    """Soft delete: the mark stays readable with current=false, deleted=true."""
    mark = await get_mark_row(db, mark_id)
    journal = await get_journal_row(db, mark.journal_id)
    ensure_journal_teacher(current_user, journal)
    if journal.archived:
        raise JournalArchived()

    result = await db.execute(
        update(Mark)
        .where(Mark.id == mark_id, Mark.current.is_(True), Mark.deleted.is_(False))
        .values(current=False, deleted=True, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        await _raise_for_stale(db, mark_id)
    await touch(db, journal.id)
    log_audit(db, "delete_mark", f"marks/{mark_id}", performed_by=current_user.id)
    await db.commit()
    return await _reload(db, mark_id)


@with_deadline()
async def attach_excuse(
    db: AsyncSession,
    student_id: int,
    mark_id: int,
    excuse: str,
    current_user: CurrentUser,
) -> ExcuseResponse:
    mark = await get_mark_row(db, mark_id)
    if mark.type != MarkType.ABSENT.value or mark.user_id != student_id or mark.deleted:
        raise NotValidAbsence()
    existing = await db.execute(select(AbsenceExcuse.id).where(AbsenceExcuse.mark_id == mark_id))
    if existing.first() is not None:
        raise AbsenceExcused()

    entry = AbsenceExcuse(mark_id=mark_id, excuse=excuse.strip(), by_id=current_user.id, at=utcnow())
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise AbsenceExcused()
    log_audit(db, "excuse_absence", f"marks/{mark_id}/excuse", performed_by=current_user.id)
    await db.commit()

    result = await db.execute(
        select(AbsenceExcuse).where(AbsenceExcuse.id == entry.id).execution_options(populate_existing=True)
    )
    return _excuse_to_response(result.scalar_one())


@with_deadline()
async def remove_excuse(db: AsyncSession, student_id: int, excuse_id: int, current_user: CurrentUser) -> None:
    """Delete an excuse; the absence itself stays."""
    excuse = await db.get(AbsenceExcuse, excuse_id)
    if not excuse:
        raise NoSuchExcuse()
    owner = await db.execute(select(Mark.user_id).where(Mark.id == excuse.mark_id))
    if owner.scalar_one_or_none() != student_id:
        raise NotValidAbsence()
    await db.execute(delete(AbsenceExcuse).where(AbsenceExcuse.id == excuse_id))
    log_audit(db, "remove_excuse", f"marks/{excuse.mark_id}/excuse", performed_by=current_user.id)
    await db.commit()


# ----- Queries -----
@with_deadline()
async def get_mark(db: AsyncSession, mark_id: int) -> MarkResponse:
    return await _reload(db, mark_id)


@with_deadline()
async def get_previous_marks(db: AsyncSession, mark_id: int) -> List[MarkResponse]:
    """The marks this one replaced, oldest first."""
    mark = await get_mark_row(db, mark_id)
    previous = list(mark.previous_ids or [])
    if not previous:
        return []
    result = await db.execute(select(Mark).where(Mark.id.in_(previous)))
    by_id = {m.id: m for m in result.scalars().all()}
    return [_to_response(by_id[i]) for i in previous if i in by_id]


def _current_only(stmt):
    return stmt.where(Mark.current.is_(True), Mark.deleted.is_(False))


@with_deadline()
async def list_by_student(db: AsyncSession, student_id: int, current_only: bool = True) -> List[MarkResponse]:
    stmt = select(Mark).where(Mark.user_id == student_id)
    if current_only:
        stmt = _current_only(stmt)
    result = await db.execute(stmt.order_by(Mark.at.asc(), Mark.id.asc()))
    return [_to_response(m) for m in result.scalars().all()]


@with_deadline()
async def list_by_journal(db: AsyncSession, journal_id: int, current_only: bool = True) -> List[MarkResponse]:
    await get_journal_row(db, journal_id)
    stmt = select(Mark).where(Mark.journal_id == journal_id)
    if current_only:
        stmt = _current_only(stmt)
    result = await db.execute(stmt.order_by(Mark.at.asc(), Mark.id.asc()))
    return [_to_response(m) for m in result.scalars().all()]


@with_deadline()
async def list_by_student_and_journal(db: AsyncSession, student_id: int, journal_id: int) -> List[MarkResponse]:
    await get_journal_row(db, journal_id)
    stmt = _current_only(select(Mark).where(Mark.user_id == student_id, Mark.journal_id == journal_id))
    result = await db.execute(stmt.order_by(Mark.at.asc(), Mark.id.asc()))
    return [_to_response(m) for m in result.scalars().all()]


@with_deadline()
async def list_absences_with_excuses(db: AsyncSession, student_id: int) -> List[MarkResponse]:
    """Current absences of a student with their excuse (if any), by lesson date."""
    stmt = _current_only(
        select(Mark)
        .join(Lesson, Lesson.id == Mark.lesson_id)
        .where(Mark.user_id == student_id, Mark.type == MarkType.ABSENT.value)
    )
    result = await db.execute(stmt.order_by(Lesson.date.asc(), Mark.id.asc()))
    return [_to_response(m) for m in result.scalars().all()]


@with_deadline()
async def latest_marks(
    db: AsyncSession,
    student_id: int,
    date_from: Optional[date] = None,
    date_until: Optional[date] = None,
) -> List[MarkResponse]:
    """Current marks last changed within [date_from, date_until], most recent first."""
    stmt = _current_only(select(Mark).where(Mark.user_id == student_id))
    if date_from is not None:
        stmt = stmt.where(Mark.updated_at >= start_of_day(date_from))
    if date_until is not None:
        stmt = stmt.where(Mark.updated_at <= end_of_day(date_until))
    result = await db.execute(stmt.order_by(Mark.updated_at.desc(), Mark.id.desc()))
    return [_to_response(m) for m in result.scalars().all()]


@with_deadline()
async def journal_matrix(db: AsyncSession, journal_id: int) -> List[JournalMatrixRow]:
    """Every member of the journal with their current marks in it."""
    students = await list_students(db, journal_id)
    result = await db.execute(
        _current_only(select(Mark).where(Mark.journal_id == journal_id)).order_by(Mark.at.asc(), Mark.id.asc())
    )
    marks_by_student: Dict[int, List[MarkResponse]] = {}
    for m in result.scalars().all():
        marks_by_student.setdefault(m.user_id, []).append(_to_response(m))
    return [JournalMatrixRow(student=s, marks=marks_by_student.get(s.id, [])) for s in students]
