from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.models import Session, User
from classjournal.auth.schemas import CurrentUser, LoginRequest, LoginResponse, SessionResponse
from classjournal.auth.security import (
    TOKEN_LENGTH,
    generate_session_token,
    hash_token,
    verify_password_async,
)
from classjournal.core.config import settings
from classjournal.core.dates import utcnow
from classjournal.core.exceptions import InvalidCredentials, InvalidToken, NoSuchSession
from classjournal.db.session import with_deadline


async def login_user(
    db: AsyncSession,
    payload: LoginRequest,
    login_ip: Optional[str] = None,
    login_browser: Optional[str] = None,
) -> LoginResponse:
    # 1. Find user by email (case-insensitive)
    result = await db.execute(select(User).where(func.lower(User.email) == payload.email.strip().lower()))
    user: Optional[User] = result.scalar_one_or_none()
    if not user:
        raise InvalidCredentials()

    # 2. Verify password hash (bcrypt runs off the event loop)
    if not await verify_password_async(payload.password, user.password_hash):
        raise InvalidCredentials()

    # 3. Archived or deactivated accounts cannot log in
    if not user.active or user.archived:
        raise InvalidCredentials()

    session = await _create_session(db, user.id, login_ip, login_browser)
    return session


@with_deadline()
async def _create_session(
    db: AsyncSession,
    user_id: int,
    login_ip: Optional[str],
    login_browser: Optional[str],
) -> LoginResponse:
    plaintext, token_hash = generate_session_token()
    now = utcnow()
    session = Session(
        token_hash=token_hash,
        user_id=user_id,
        expires=now + timedelta(hours=settings.auth.session_lifetime_hours),
        login_ip=login_ip,
        login_browser=login_browser,
        logged_in=now,
        last_seen=now,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    return LoginResponse(token=plaintext, session=SessionResponse.model_validate(session))


@with_deadline()
async def resolve_session_token(db: AsyncSession, plaintext: str) -> CurrentUser:
    """Look up the unexpired session for a bearer token and refresh its last_seen."""
    if len(plaintext) != TOKEN_LENGTH:
        raise InvalidToken()
    now = utcnow()
    result = await db.execute(
        select(Session.id, User.id, User.name, User.role)
        .join(User, User.id == Session.user_id)
        .where(
            Session.token_hash == hash_token(plaintext),
            Session.expires > now,
            User.active.is_(True),
            User.archived.is_(False),
        )
    )
    row = result.first()
    if row is None:
        raise InvalidToken()
    session_id, user_id, name, role = row
    await db.execute(update(Session).where(Session.id == session_id).values(last_seen=now))
    await db.commit()
    return CurrentUser(id=user_id, name=name, role=role, session_id=session_id)


@with_deadline()
async def list_sessions(db: AsyncSession, user_id: int) -> List[Session]:
    result = await db.execute(
        select(Session)
        .where(Session.user_id == user_id, Session.expires > utcnow())
        .order_by(Session.last_seen.desc())
    )
    return list(result.scalars().all())


@with_deadline()
async def get_session(db: AsyncSession, session_id: int) -> Session:
    session = await db.get(Session, session_id)
    if not session:
        raise NoSuchSession()
    return session


@with_deadline()
async def remove_session(db: AsyncSession, session_id: int) -> None:
    result = await db.execute(delete(Session).where(Session.id == session_id))
    if result.rowcount == 0:
        raise NoSuchSession()
    await db.commit()


@with_deadline()
async def remove_all_sessions(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(delete(Session).where(Session.user_id == user_id))
    await db.commit()
    return result.rowcount


def split_authorization_header(header: str) -> Tuple[str, str]:
    scheme, _, token = header.partition(" ")
    return scheme, token.strip()
