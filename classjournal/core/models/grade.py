"""Grade definitions: a short label and its numeric value (e.g. "A" = 5). Not a mark."""

from sqlalchemy import CheckConstraint, Column, Integer, String, UniqueConstraint

from classjournal.db.session import Base


class Grade(Base):
    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("identifier", name="uq_grades_identifier"),
        CheckConstraint("value > 0", name="ck_grades_value_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    identifier = Column(String(3), nullable=False)
    value = Column(Integer, nullable=False)
