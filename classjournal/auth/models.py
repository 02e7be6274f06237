from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from classjournal.core.dates import utcnow
from classjournal.db.session import Base


class User(Base):
    """Administrator, teacher, parent or student account."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone_number = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    birth_date = Column(Date, nullable=True)
    password_hash = Column(Text, nullable=False)
    # administrator | teacher | parent | student
    role = Column(String(20), nullable=False)
    # Students only
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    archived = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan")


class ParentChild(Base):
    """Parent to child link; a child may have several parents."""

    __tablename__ = "parents_children"

    parent_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    child_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


class Session(Base):
    """Login session. Only the SHA-256 of the bearer token is stored."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_hash = Column(LargeBinary(32), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires = Column(DateTime(timezone=True), nullable=False)
    login_ip = Column(String(64), nullable=True)
    login_browser = Column(Text, nullable=True)
    logged_in = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_seen = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="sessions")
