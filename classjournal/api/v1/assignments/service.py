from datetime import date
from typing import List, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.journals.service import (
    ensure_journal_teacher,
    get_journal_row,
    get_writable_journal,
)
from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.auth.schemas import CurrentUser
from classjournal.core.dates import utcnow
from classjournal.core.exceptions import EditConflict, JournalArchived, NoSuchAssignment, NotAllowed
from classjournal.core.models import Assignment, DoneAssignment, JournalStudent
from classjournal.db.session import with_deadline

from .schemas import (
    AssignmentCreate,
    AssignmentJournal,
    AssignmentResponse,
    AssignmentSubject,
    AssignmentUpdate,
    StudentAssignmentResponse,
)


def _to_response(assignment: Assignment, response_cls=AssignmentResponse, **extra) -> AssignmentResponse:
    journal = assignment.journal
    return response_cls(
        id=assignment.id,
        journal=AssignmentJournal(id=journal.id, name=journal.name, archived=journal.archived),
        subject=AssignmentSubject(id=journal.subject.id, name=journal.subject.name),
        description=assignment.description,
        deadline=assignment.deadline,
        type=assignment.type,
        created_at=assignment.created_at,
        updated_at=assignment.updated_at,
        version=assignment.version,
        **extra,
    )


async def get_assignment_row(db: AsyncSession, assignment_id: int) -> Assignment:
    result = await db.execute(
        select(Assignment).where(Assignment.id == assignment_id).execution_options(populate_existing=True)
    )
    assignment = result.scalar_one_or_none()
    if not assignment:
        raise NoSuchAssignment()
    return assignment


@with_deadline()
async def create_assignment(
    db: AsyncSession, payload: AssignmentCreate, current_user: CurrentUser
) -> AssignmentResponse:
    journal = await get_journal_row(db, payload.journal_id)
    ensure_journal_teacher(current_user, journal)
    if journal.archived:
        raise JournalArchived()

    now = utcnow()
    assignment = Assignment(
        journal_id=journal.id,
        description=payload.description,
        deadline=payload.deadline,
        type=payload.type.value,
        created_at=now,
        updated_at=now,
    )
    db.add(assignment)
    await db.flush()
    log_audit(db, "create_assignment", f"assignments/{assignment.id}", performed_by=current_user.id)
    await db.commit()
    return _to_response(await get_assignment_row(db, assignment.id))


@with_deadline()
async def get_assignment(db: AsyncSession, assignment_id: int) -> AssignmentResponse:
    return _to_response(await get_assignment_row(db, assignment_id))


@with_deadline()
async def update_assignment(
    db: AsyncSession,
    assignment_id: int,
    payload: AssignmentUpdate,
    current_user: CurrentUser,
) -> AssignmentResponse:
    assignment = await get_assignment_row(db, assignment_id)
    journal = await get_writable_journal(db, assignment.journal_id)
    ensure_journal_teacher(current_user, journal)

    data = payload.model_dump(exclude_unset=True, exclude={"version"})
    if "type" in data:
        data["type"] = data["type"].value

    result = await db.execute(
        update(Assignment)
        .where(Assignment.id == assignment_id, Assignment.version == payload.version)
        .values(**data, updated_at=utcnow(), version=Assignment.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise EditConflict()
    log_audit(db, "update_assignment", f"assignments/{assignment_id}", performed_by=current_user.id)
    await db.commit()
    return _to_response(await get_assignment_row(db, assignment_id))


@with_deadline()
async def delete_assignment(db: AsyncSession, assignment_id: int, current_user: CurrentUser) -> None:
    assignment = await get_assignment_row(db, assignment_id)
    journal = await get_journal_row(db, assignment.journal_id)
    ensure_journal_teacher(current_user, journal)
    await db.execute(delete(Assignment).where(Assignment.id == assignment_id))
    log_audit(db, "delete_assignment", f"assignments/{assignment_id}", performed_by=current_user.id)
    await db.commit()


@with_deadline()
async def list_assignments(db: AsyncSession, journal_id: int) -> List[AssignmentResponse]:
    """Assignments of a journal, earliest deadline first."""
    await get_journal_row(db, journal_id)
    result = await db.execute(
        select(Assignment)
        .where(Assignment.journal_id == journal_id)
        .order_by(Assignment.deadline.asc(), Assignment.id.asc())
    )
    return [_to_response(a) for a in result.scalars().all()]


@with_deadline()
async def list_assignments_for_student(
    db: AsyncSession,
    student_id: int,
    date_from: Optional[date] = None,
    date_until: Optional[date] = None,
) -> List[StudentAssignmentResponse]:
    """Assignments across the student's journals with deadlines in [date_from, date_until], plus the done flag."""
    stmt = (
        select(Assignment, DoneAssignment.user_id.is_not(None))
        .join(JournalStudent, JournalStudent.journal_id == Assignment.journal_id)
        .outerjoin(
            DoneAssignment,
            and_(DoneAssignment.assignment_id == Assignment.id, DoneAssignment.user_id == student_id),
        )
        .where(JournalStudent.user_id == student_id)
    )
    if date_from is not None:
        stmt = stmt.where(Assignment.deadline >= date_from)
    if date_until is not None:
        stmt = stmt.where(Assignment.deadline <= date_until)
    result = await db.execute(stmt.order_by(Assignment.deadline.asc(), Assignment.id.asc()))
    return [
        _to_response(assignment, StudentAssignmentResponse, done=bool(done))
        for assignment, done in result.all()
    ]


async def _check_done_allowed(db: AsyncSession, student_id: int, assignment_id: int) -> None:
    assignment = await get_assignment_row(db, assignment_id)
    member = await db.execute(
        select(JournalStudent.user_id).where(
            JournalStudent.journal_id == assignment.journal_id, JournalStudent.user_id == student_id
        )
    )
    if member.first() is None:
        raise NotAllowed()


@with_deadline()
async def set_assignment_done(db: AsyncSession, student_id: int, assignment_id: int) -> None:
    """Mark an assignment done for a journal member. Marking twice is a no-op."""
    await _check_done_allowed(db, student_id, assignment_id)
    exists = await db.execute(
        select(DoneAssignment.user_id).where(
            DoneAssignment.user_id == student_id, DoneAssignment.assignment_id == assignment_id
        )
    )
    if exists.first() is not None:
        return
    db.add(DoneAssignment(user_id=student_id, assignment_id=assignment_id))
    try:
        await db.commit()
    except IntegrityError:
        # Marked concurrently
        await db.rollback()


@with_deadline()
async def remove_assignment_done(db: AsyncSession, student_id: int, assignment_id: int) -> None:
    await _check_done_allowed(db, student_id, assignment_id)
    await db.execute(
        delete(DoneAssignment).where(
            DoneAssignment.user_id == student_id, DoneAssignment.assignment_id == assignment_id
        )
    )
    await db.commit()
