from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.api.v1.logs.audit_service import log_audit
from classjournal.core.enums import Role
from classjournal.core.exceptions import ConflictError, NoSuchYear
from classjournal.core.models import ClassYear, Journal, User, Year
from classjournal.db.session import with_deadline

from .schemas import YearCreate, YearResponse, YearStats


@with_deadline()
async def list_years(db: AsyncSession) -> List[YearResponse]:
    result = await db.execute(select(Year).order_by(Year.id.asc()))
    return [YearResponse.model_validate(y) for y in result.scalars().all()]


@with_deadline()
async def list_years_with_stats(db: AsyncSession) -> List[YearResponse]:
    """Years with the number of journals and of students whose class has a name in that year."""
    journal_count = (
        select(func.count(Journal.id)).where(Journal.year_id == Year.id).correlate(Year).scalar_subquery()
    )
    student_count = (
        select(func.count(User.id))
        .join(ClassYear, ClassYear.class_id == User.class_id)
        .where(ClassYear.year_id == Year.id, User.role == Role.STUDENT.value)
        .correlate(Year)
        .scalar_subquery()
    )
    result = await db.execute(select(Year, journal_count, student_count).order_by(Year.id.asc()))
    years = []
    for year, journals, students in result.all():
        resp = YearResponse.model_validate(year)
        resp.stats = YearStats(journal_count=journals, student_count=students)
        years.append(resp)
    return years


@with_deadline()
async def get_year(db: AsyncSession, year_id: int) -> YearResponse:
    year = await db.get(Year, year_id)
    if not year:
        raise NoSuchYear()
    return YearResponse.model_validate(year)


@with_deadline()
async def get_current_year(db: AsyncSession) -> YearResponse:
    """The single year flagged current. Default scope for journal listings."""
    result = await db.execute(select(Year).where(Year.current.is_(True)))
    year = result.scalar_one_or_none()
    if not year:
        raise NoSuchYear("no current year set")
    return YearResponse.model_validate(year)


@with_deadline()
async def insert_year(db: AsyncSession, payload: YearCreate, performed_by: Optional[int] = None) -> YearResponse:
    """Create a year. If current=true, unset current on all other years (same transaction)."""
    if payload.current:
        await db.execute(
            update(Year)
            .where(Year.current.is_(True))
            .values(current=False)
            .execution_options(synchronize_session=False)
        )
    year = Year(display_name=payload.display_name.strip(), courses=payload.courses, current=payload.current)
    db.add(year)
    try:
        await db.flush()
        log_audit(db, "create_year", f"years/{year.id}", performed_by=performed_by)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("another year is already marked as current")
    return YearResponse.model_validate(year)


@with_deadline()
async def set_current_year(db: AsyncSession, year_id: int, performed_by: Optional[int] = None) -> YearResponse:
    year = await db.get(Year, year_id)
    if not year:
        raise NoSuchYear()
    await db.execute(
        update(Year)
        .where(Year.current.is_(True), Year.id != year_id)
        .values(current=False)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(Year).where(Year.id == year_id).values(current=True).execution_options(synchronize_session=False)
    )
    log_audit(db, "set_current_year", f"years/{year_id}", performed_by=performed_by)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("another year is already marked as current")
    result = await db.execute(select(Year).where(Year.id == year_id).execution_options(populate_existing=True))
    return YearResponse.model_validate(result.scalar_one())
