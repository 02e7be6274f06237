"""Teaching journals: one (subject, cohort, year) unit owned by a teacher."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from classjournal.core.dates import utcnow
from classjournal.db.session import Base


class Journal(Base):
    __tablename__ = "journals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    year_id = Column(Integer, ForeignKey("years.id"), nullable=False)
    archived = Column(Boolean, nullable=False, default=False)
    # Advisory; bumped on every mark write that targets the journal.
    last_updated = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    teacher = relationship("User", foreign_keys=[teacher_id], lazy="joined")
    subject = relationship("Subject", lazy="joined")
    year = relationship("Year", lazy="joined")


class JournalStudent(Base):
    """Journal membership of a student."""

    __tablename__ = "users_journals"

    journal_id = Column(Integer, ForeignKey("journals.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
