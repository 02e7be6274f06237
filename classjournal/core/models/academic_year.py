from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, String

from classjournal.db.session import Base


class Year(Base):
    """Academic year split into `courses` sequential parts. At most one row is current."""

    __tablename__ = "years"
    __table_args__ = (CheckConstraint("courses > 0", name="ck_years_courses_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(String(100), nullable=False)
    courses = Column(Integer, nullable=False)
    current = Column(Boolean, nullable=False, default=False)


Index(
    "uq_years_single_current",
    Year.current,
    unique=True,
    postgresql_where=Year.current.is_(True),
    sqlite_where=Year.current.is_(True),
)
