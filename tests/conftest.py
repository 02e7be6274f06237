from datetime import timedelta
from types import SimpleNamespace
from typing import AsyncGenerator, Callable, Dict

import bcrypt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import classjournal.core.models  # noqa: F401
from classjournal.auth.models import ParentChild, Session, User
from classjournal.auth.security import generate_session_token
from classjournal.core.dates import utcnow
from classjournal.core.models import Grade, Journal, JournalStudent, SchoolClass, Subject, Year
from classjournal.db.session import Base, get_db
from classjournal.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"
PASSWORD = "password123"
# Low cost factor keeps seeding fast; verification does not care about rounds.
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture()
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database per test, shared by every session through one connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for calling services directly or checking rows after a request."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def create_user(session: AsyncSession, name: str, email: str, role: str, **kwargs) -> int:
    user = User(name=name, email=email, role=role, password_hash=PASSWORD_HASH, **kwargs)
    session.add(user)
    await session.flush()
    return user.id


async def create_token(session: AsyncSession, user_id: int, lifetime: timedelta = timedelta(hours=1)) -> str:
    plaintext, token_hash = generate_session_token()
    now = utcnow()
    session.add(
        Session(
            token_hash=token_hash,
            user_id=user_id,
            expires=now + lifetime,
            logged_in=now,
            last_seen=now,
        )
    )
    await session.flush()
    return plaintext


@pytest.fixture()
async def school(session_factory) -> SimpleNamespace:
    """A small school: one of each role, a current year with 4 courses, a math journal.

    `student` is a member of the journal and a child of `parent`; `other_student` is neither.
    """
    async with session_factory() as session:
        ids: Dict[str, int] = {}
        ids["admin"] = await create_user(session, "Ada Admin", "admin@school.ee", "administrator")
        ids["teacher"] = await create_user(session, "Tiina Teacher", "teacher@school.ee", "teacher")
        ids["other_teacher"] = await create_user(session, "Toomas Teacher", "toomas@school.ee", "teacher")
        ids["parent"] = await create_user(session, "Pille Parent", "parent@school.ee", "parent")

        school_class = SchoolClass(name="7A", teacher_id=ids["teacher"], archived=False)
        session.add(school_class)
        await session.flush()
        ids["school_class"] = school_class.id

        ids["student"] = await create_user(
            session, "Sander Student", "student@school.ee", "student", class_id=school_class.id
        )
        ids["other_student"] = await create_user(session, "Olev Other", "olev@school.ee", "student")
        session.add(ParentChild(parent_id=ids["parent"], child_id=ids["student"]))

        year = Year(display_name="2026/2027", courses=4, current=True)
        subject = Subject(name="Mathematics")
        grade_5 = Grade(identifier="5", value=5)
        grade_3 = Grade(identifier="3", value=3)
        session.add_all([year, subject, grade_5, grade_3])
        await session.flush()
        ids.update(year=year.id, subject=subject.id, grade_5=grade_5.id, grade_3=grade_3.id)

        journal = Journal(
            name="Mathematics 7A",
            teacher_id=ids["teacher"],
            subject_id=subject.id,
            year_id=year.id,
            archived=False,
            last_updated=utcnow(),
        )
        session.add(journal)
        await session.flush()
        ids["journal"] = journal.id
        session.add(JournalStudent(journal_id=journal.id, user_id=ids["student"]))

        tokens = {}
        for role in ("admin", "teacher", "other_teacher", "parent", "student", "other_student"):
            tokens[role] = await create_token(session, ids[role])
        await session.commit()

    ns = SimpleNamespace(**ids)
    ns.tokens = tokens
    return ns


@pytest.fixture()
def auth(school) -> Callable[[str], Dict[str, str]]:
    """auth("teacher") -> Authorization header for that seeded user."""

    def _headers(who: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {school.tokens[who]}"}

    return _headers


@pytest.fixture()
async def lesson_id(client: AsyncClient, school, auth) -> int:
    response = await client.post(
        "/api/v1/lessons",
        json={"journal_id": school.journal, "description": "Fractions", "date": "2026-10-12", "course": 1},
        headers=auth("teacher"),
    )
    assert response.status_code == 201
    return response.json()["lesson"]["id"]


def today() -> str:
    return utcnow().date().isoformat()
