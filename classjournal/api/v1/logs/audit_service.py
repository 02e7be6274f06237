"""
Audit logging for administrative actions and mark writes. Call on every state change.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.core.dates import utcnow
from classjournal.core.models import Log


def log_audit(
    db: AsyncSession,
    action: str,
    target: str,
    *,
    performed_by: Optional[int] = None,
) -> None:
    """Append one audit log entry. Caller must commit."""
    entry = Log(
        user_id=performed_by,
        action=action,
        target=target,
        at=utcnow(),
    )
    db.add(entry)
