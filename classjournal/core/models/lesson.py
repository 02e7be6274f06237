from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from classjournal.core.dates import utcnow
from classjournal.db.session import Base


class Lesson(Base):
    """A lesson held on a date within one course of the journal's year. Edited under version."""

    __tablename__ = "lessons"
    __table_args__ = (CheckConstraint("course > 0", name="ck_lessons_course_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    journal_id = Column(Integer, ForeignKey("journals.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    date = Column(Date, nullable=False)
    course = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    journal = relationship("Journal", lazy="joined")
