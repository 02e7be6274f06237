from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.core.exceptions import NoSuchSubject
from classjournal.core.models import Subject
from classjournal.db.session import with_deadline

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate


@with_deadline()
async def list_subjects(db: AsyncSession) -> List[SubjectResponse]:
    result = await db.execute(select(Subject).order_by(Subject.name.asc()))
    return [SubjectResponse.model_validate(s) for s in result.scalars().all()]


@with_deadline()
async def get_subject(db: AsyncSession, subject_id: int) -> SubjectResponse:
    subject = await db.get(Subject, subject_id)
    if not subject:
        raise NoSuchSubject()
    return SubjectResponse.model_validate(subject)


@with_deadline()
async def create_subject(db: AsyncSession, payload: SubjectCreate, performed_by: Optional[int] = None) -> SubjectResponse:
    subject = Subject(name=payload.name.strip())
    db.add(subject)
    await db.flush()
    log_audit(db, "create_subject", f"subjects/{subject.id}", performed_by=performed_by)
    await db.commit()
    return SubjectResponse.model_validate(subject)


@with_deadline()
async def update_subject(
    db: AsyncSession,
    subject_id: int,
    payload: SubjectUpdate,
    performed_by: Optional[int] = None,
) -> SubjectResponse:
    subject = await db.get(Subject, subject_id)
    if not subject:
        raise NoSuchSubject()
    subject.name = payload.name.strip()
    log_audit(db, "update_subject", f"subjects/{subject_id}", performed_by=performed_by)
    await db.commit()
    return SubjectResponse.model_validate(subject)
