from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.core.models import Log, User
from classjournal.db.filters import LIKE_ESCAPE, contains_pattern
from classjournal.db.session import with_deadline

from .schemas import LogPage, LogResponse, LogUser

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


@with_deadline()
async def list_logs(
    db: AsyncSession,
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
    search: Optional[str] = None,
) -> LogPage:
    """Newest first. The total comes from a window count over the filtered rows."""
    total = func.count().over().label("total")
    stmt = (
        select(Log.id, Log.action, Log.target, Log.at, User.id, User.name, total)
        .select_from(Log)
        .outerjoin(User, User.id == Log.user_id)
    )
    if search:
        pattern = contains_pattern(search)
        stmt = stmt.where(
            or_(User.name.ilike(pattern, escape=LIKE_ESCAPE), Log.target.ilike(pattern, escape=LIKE_ESCAPE))
        )
    stmt = stmt.order_by(Log.at.desc(), Log.id.desc()).offset((page - 1) * limit).limit(limit)

    rows = (await db.execute(stmt)).all()
    logs = [
        LogResponse(
            id=log_id,
            action=action,
            target=target,
            at=at,
            user=LogUser(id=user_id, name=user_name) if user_id is not None else None,
        )
        for log_id, action, target, at, user_id, user_name, _ in rows
    ]
    return LogPage(logs=logs, total=rows[0].total if rows else 0, page=page, limit=limit)
