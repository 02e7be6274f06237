"""Marks and absence excuses.

A mark row is never edited as a record: a correction inserts a new row whose
`previous_ids` lists every ancestor (oldest first) and flips the old row to
`current = false`; deletion only sets `deleted`. Only the two flags and
`updated_at` ever change after insert.
"""

from sqlalchemy import (
    ARRAY,
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from classjournal.core.dates import utcnow
from classjournal.core.enums import SINGULAR_LESSON_MARK_TYPES
from classjournal.db.session import Base

MarkIdList = ARRAY(Integer).with_variant(JSON(), "sqlite")


class Mark(Base):
    __tablename__ = "marks"
    __table_args__ = (
        CheckConstraint(
            "lesson_id IS NULL OR subject_id IS NULL",
            name="ck_marks_single_target",
        ),
        CheckConstraint(
            "course IS NULL OR journal_id IS NOT NULL",
            name="ck_marks_course_in_journal",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True)
    course = Column(Integer, nullable=True)
    journal_id = Column(Integer, ForeignKey("journals.id", ondelete="CASCADE"), nullable=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True)
    grade_id = Column(Integer, ForeignKey("grades.id"), nullable=True)
    comment = Column(Text, nullable=True)
    current = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False)
    previous_ids = Column(MarkIdList, nullable=False, default=list)
    by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    lesson = relationship("Lesson", lazy="joined")
    journal = relationship("Journal", lazy="joined")
    grade = relationship("Grade", lazy="joined")
    subject = relationship("Subject", lazy="joined")
    by = relationship("User", foreign_keys=[by_id], lazy="joined")
    excuse = relationship("AbsenceExcuse", back_populates="mark", uselist=False, lazy="joined")


Index(
    "uq_marks_singular_lesson_mark",
    Mark.user_id,
    Mark.lesson_id,
    Mark.type,
    unique=True,
    postgresql_where=(
        Mark.type.in_([t.value for t in SINGULAR_LESSON_MARK_TYPES])
        & Mark.current.is_(True)
        & Mark.deleted.is_(False)
    ),
    sqlite_where=(
        Mark.type.in_([t.value for t in SINGULAR_LESSON_MARK_TYPES])
        & Mark.current.is_(True)
        & Mark.deleted.is_(False)
    ),
)


class AbsenceExcuse(Base):
    """Justification for one absent mark; its presence makes the absence excused."""

    __tablename__ = "absences_excuses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mark_id = Column(Integer, ForeignKey("marks.id", ondelete="CASCADE"), nullable=False, unique=True)
    excuse = Column(Text, nullable=False)
    by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    mark = relationship("Mark", back_populates="excuse")
    by = relationship("User", foreign_keys=[by_id], lazy="joined")
