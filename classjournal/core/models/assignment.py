from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from classjournal.core.dates import utcnow
from classjournal.db.session import Base


class Assignment(Base):
    """Homework or test set in a journal, due on `deadline`. Edited under version."""

    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    journal_id = Column(Integer, ForeignKey("journals.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    deadline = Column(Date, nullable=False)
    # homework | test
    type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    journal = relationship("Journal", lazy="joined")


class DoneAssignment(Base):
    """A student's own mark that an assignment is finished."""

    __tablename__ = "done_assignments"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True)
