from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from classjournal.db.session import Base


class Group(Base):
    """Named set of users (e.g. "Teachers", "Parents of 7A") used for addressing."""

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    archived = Column(Boolean, nullable=False, default=False)


class GroupUser(Base):
    __tablename__ = "users_groups"

    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
