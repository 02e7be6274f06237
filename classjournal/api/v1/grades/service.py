from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.core.exceptions import IdentifierAlreadyExists, NoSuchGrade
from classjournal.core.models import Grade
from classjournal.db.session import with_deadline

from .schemas import GradeCreate, GradeResponse, GradeUpdate


async def _identifier_taken(db: AsyncSession, identifier: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Grade.id).where(Grade.identifier == identifier)
    if exclude_id is not None:
        stmt = stmt.where(Grade.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


@with_deadline()
async def list_grades(db: AsyncSession) -> List[GradeResponse]:
    result = await db.execute(select(Grade).order_by(Grade.value.desc(), Grade.identifier.asc()))
    return [GradeResponse.model_validate(g) for g in result.scalars().all()]


@with_deadline()
async def get_grade(db: AsyncSession, grade_id: int) -> GradeResponse:
    grade = await db.get(Grade, grade_id)
    if not grade:
        raise NoSuchGrade()
    return GradeResponse.model_validate(grade)


@with_deadline()
async def create_grade(db: AsyncSession, payload: GradeCreate, performed_by: Optional[int] = None) -> GradeResponse:
    identifier = payload.identifier.strip()
    if await _identifier_taken(db, identifier):
        raise IdentifierAlreadyExists()
    grade = Grade(identifier=identifier, value=payload.value)
    db.add(grade)
    try:
        await db.flush()
        log_audit(db, "create_grade", f"grades/{grade.id}", performed_by=performed_by)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise IdentifierAlreadyExists()
    return GradeResponse.model_validate(grade)


@with_deadline()
async def update_grade(
    db: AsyncSession,
    grade_id: int,
    payload: GradeUpdate,
    performed_by: Optional[int] = None,
) -> GradeResponse:
    grade = await db.get(Grade, grade_id)
    if not grade:
        raise NoSuchGrade()

    data = payload.model_dump(exclude_unset=True)
    if "identifier" in data:
        data["identifier"] = data["identifier"].strip()
        if await _identifier_taken(db, data["identifier"], exclude_id=grade_id):
            raise IdentifierAlreadyExists()
    for k, v in data.items():
        setattr(grade, k, v)

    log_audit(db, "update_grade", f"grades/{grade_id}", performed_by=performed_by)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise IdentifierAlreadyExists()
    return GradeResponse.model_validate(grade)
