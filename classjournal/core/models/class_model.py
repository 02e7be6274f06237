"""School classes (e.g. 7A). Model named SchoolClass to avoid Python 'class' keyword."""
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from classjournal.db.session import Base


class SchoolClass(Base):
    """Class with its form teacher. Never hard-deleted; retired via archived."""

    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    teacher_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL", use_alter=True, name="fk_classes_teacher_id"),
        nullable=True,
    )
    archived = Column(Boolean, nullable=False, default=False)


class ClassYear(Base):
    """Display name a class carries in a given year (7A becomes 8A next year)."""

    __tablename__ = "classes_years"

    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    year_id = Column(Integer, ForeignKey("years.id", ondelete="CASCADE"), primary_key=True)
    display_name = Column(String(50), nullable=False)
