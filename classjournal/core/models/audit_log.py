"""
Audit log for administrative actions and mark writes. One row per action.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from classjournal.core.dates import utcnow
from classjournal.db.session import Base


class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False)
    target = Column(Text, nullable=False)
    at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    user = relationship("User", foreign_keys=[user_id], lazy="joined")
