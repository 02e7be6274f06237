from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.models import Session, User
from classjournal.auth.security import hash_token
from classjournal.core.dates import utcnow

from conftest import PASSWORD


async def test_login_success(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/sessions",
        json={"email": "teacher@school.ee", "password": PASSWORD},
        headers={"User-Agent": "pytest-browser"},
    )
    assert response.status_code == 202
    data = response.json()

    assert len(data["token"]) == 26
    assert data["session"]["user_id"] == school.teacher
    assert data["session"]["login_browser"] == "pytest-browser"
    assert "token_hash" not in data["session"]

    me = await client.get(
        f"/api/v1/users/{school.teacher}",
        headers={"Authorization": f"Bearer {data['token']}"},
    )
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "teacher@school.ee"


async def test_login_email_is_case_insensitive(client: AsyncClient, school) -> None:
    response = await client.post("/api/v1/sessions", json={"email": "Teacher@School.EE", "password": PASSWORD})
    assert response.status_code == 202


async def test_login_wrong_password(client: AsyncClient, school) -> None:
    response = await client.post("/api/v1/sessions", json={"email": "teacher@school.ee", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json() == {"error": "invalid credentials"}


async def test_login_unknown_email(client: AsyncClient, school) -> None:
    response = await client.post("/api/v1/sessions", json={"email": "nobody@school.ee", "password": PASSWORD})
    assert response.status_code == 401


async def test_login_inactive_user_rejected(client: AsyncClient, db_session: AsyncSession, school) -> None:
    await db_session.execute(update(User).where(User.id == school.teacher).values(active=False))
    await db_session.commit()

    response = await client.post("/api/v1/sessions", json={"email": "teacher@school.ee", "password": PASSWORD})
    assert response.status_code == 401


async def test_login_missing_fields(client: AsyncClient, school) -> None:
    response = await client.post("/api/v1/sessions", json={"email": "teacher@school.ee"})
    assert response.status_code == 400
    assert "password" in response.json()["error"]


async def test_anonymous_request_is_rejected(client: AsyncClient, school) -> None:
    response = await client.get("/api/v1/subjects")
    assert response.status_code == 401
    assert response.json() == {"error": "authentication required"}


async def test_malformed_and_unknown_tokens(client: AsyncClient, school) -> None:
    for header in ("Token abc", "Bearer ", "Bearer short", "Bearer " + "A" * 26):
        response = await client.get("/api/v1/subjects", headers={"Authorization": header})
        assert response.status_code == 401
        assert response.json() == {"error": "invalid token"}


async def test_expired_session_is_rejected(client: AsyncClient, db_session: AsyncSession, school, auth) -> None:
    response = await client.get("/api/v1/subjects", headers=auth("teacher"))
    assert response.status_code == 200

    token_hash = hash_token(school.tokens["teacher"])
    await db_session.execute(
        update(Session).where(Session.token_hash == token_hash).values(expires=utcnow() - timedelta(hours=1))
    )
    await db_session.commit()

    response = await client.get("/api/v1/subjects", headers=auth("teacher"))
    assert response.status_code == 401
    assert response.json() == {"error": "invalid token"}


async def test_last_seen_advances(client: AsyncClient, db_session: AsyncSession, school, auth) -> None:
    token_hash = hash_token(school.tokens["student"])
    before = (await db_session.execute(select(Session.last_seen).where(Session.token_hash == token_hash))).scalar_one()

    response = await client.get(f"/api/v1/users/{school.student}", headers=auth("student"))
    assert response.status_code == 200

    db_session.expire_all()
    after = (await db_session.execute(select(Session.last_seen).where(Session.token_hash == token_hash))).scalar_one()
    assert after >= before


async def test_list_and_remove_own_sessions(client: AsyncClient, school, auth) -> None:
    login = await client.post("/api/v1/sessions", json={"email": "parent@school.ee", "password": PASSWORD})
    assert login.status_code == 202
    new_session_id = login.json()["session"]["id"]

    response = await client.get(f"/api/v1/users/{school.parent}/sessions", headers=auth("parent"))
    assert response.status_code == 200
    assert len(response.json()["sessions"]) == 2

    response = await client.delete(f"/api/v1/sessions/{new_session_id}", headers=auth("parent"))
    assert response.status_code == 200

    response = await client.get(f"/api/v1/users/{school.parent}/sessions", headers=auth("parent"))
    assert [s["id"] for s in response.json()["sessions"]] != [new_session_id]
    assert len(response.json()["sessions"]) == 1


async def test_other_users_sessions_are_private(client: AsyncClient, school, auth) -> None:
    response = await client.get(f"/api/v1/users/{school.teacher}/sessions", headers=auth("student"))
    assert response.status_code == 403

    response = await client.get(f"/api/v1/users/{school.teacher}/sessions", headers=auth("admin"))
    assert response.status_code == 200


async def test_remove_all_sessions_logs_out(client: AsyncClient, school, auth) -> None:
    response = await client.delete(f"/api/v1/users/{school.student}/sessions", headers=auth("admin"))
    assert response.status_code == 200

    response = await client.get(f"/api/v1/users/{school.student}", headers=auth("student"))
    assert response.status_code == 401
