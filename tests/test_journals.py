from httpx import AsyncClient


async def test_create_journal_defaults_to_caller_and_current_year(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/journals",
        json={"name": "Geometry 7A", "subject_id": school.subject},
        headers=auth("other_teacher"),
    )
    assert response.status_code == 201
    journal = response.json()["journal"]
    assert journal["teacher"]["id"] == school.other_teacher
    assert journal["year"] == {"id": school.year, "display_name": "2026/2027", "courses": 4}
    assert journal["archived"] is False
    assert journal["courses"] == []


async def test_create_journal_checks_references(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/journals",
        json={"name": "Nope", "subject_id": school.subject, "teacher_id": school.parent},
        headers=auth("admin"),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "not a teacher"}

    response = await client.post(
        "/api/v1/journals", json={"name": "Nope", "subject_id": 999}, headers=auth("teacher")
    )
    assert response.status_code == 404
    assert response.json() == {"error": "no such subject"}

    response = await client.post(
        "/api/v1/journals", json={"name": "Nope", "subject_id": school.subject}, headers=auth("student")
    )
    assert response.status_code == 403


async def test_journal_visibility(client: AsyncClient, school, auth) -> None:
    url = f"/api/v1/journals/{school.journal}"
    for who in ("teacher", "admin", "student", "parent"):
        response = await client.get(url, headers=auth(who))
        assert response.status_code == 200, who
    for who in ("other_teacher", "other_student"):
        response = await client.get(url, headers=auth(who))
        assert response.status_code == 403, who


async def test_membership(client: AsyncClient, school, auth) -> None:
    url = f"/api/v1/users/{school.other_student}/journals"
    body = {"journal_id": school.journal}
    assert (await client.post(url, json=body, headers=auth("teacher"))).status_code == 200
    # Adding an existing member again is a no-op.
    assert (await client.post(url, json=body, headers=auth("teacher"))).status_code == 200

    response = await client.get(f"/api/v1/journals/{school.journal}/students", headers=auth("teacher"))
    assert [s["id"] for s in response.json()["students"]] == [school.other_student, school.student]

    response = await client.get(url, headers=auth("other_student"))
    assert [j["id"] for j in response.json()["journals"]] == [school.journal]

    response = await client.delete(f"{url}/{school.journal}", headers=auth("teacher"))
    assert response.status_code == 200
    response = await client.delete(f"{url}/{school.journal}", headers=auth("teacher"))
    assert response.status_code == 400
    assert response.json() == {"error": "user not in journal"}


async def test_membership_requires_student_and_owner(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        f"/api/v1/users/{school.parent}/journals", json={"journal_id": school.journal}, headers=auth("teacher")
    )
    assert response.status_code == 400
    assert response.json() == {"error": "not a student"}

    response = await client.post(
        f"/api/v1/users/{school.other_student}/journals",
        json={"journal_id": school.journal},
        headers=auth("other_teacher"),
    )
    assert response.status_code == 403


async def test_archived_journal_is_read_only(client: AsyncClient, school, auth) -> None:
    response = await client.patch(
        f"/api/v1/journals/{school.journal}", json={"archived": True}, headers=auth("teacher")
    )
    assert response.status_code == 200
    assert response.json()["journal"]["archived"] is True

    response = await client.post(
        "/api/v1/lessons",
        json={"journal_id": school.journal, "date": "2026-10-12", "course": 1},
        headers=auth("teacher"),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "journal is archived"}

    response = await client.post(
        f"/api/v1/users/{school.other_student}/journals", json={"journal_id": school.journal}, headers=auth("teacher")
    )
    assert response.status_code == 400


async def test_update_journal_touches_last_updated(client: AsyncClient, school, auth) -> None:
    before = (await client.get(f"/api/v1/journals/{school.journal}", headers=auth("teacher"))).json()["journal"]
    response = await client.patch(
        f"/api/v1/journals/{school.journal}", json={"name": "Algebra 7A"}, headers=auth("teacher")
    )
    after = response.json()["journal"]
    assert after["name"] == "Algebra 7A"
    assert after["last_updated"] >= before["last_updated"]


async def test_list_journals_for_year_and_teacher(client: AsyncClient, school, auth) -> None:
    response = await client.get("/api/v1/journals", headers=auth("teacher"))
    assert [j["id"] for j in response.json()["journals"]] == [school.journal]

    response = await client.get(f"/api/v1/teachers/{school.teacher}/journals", headers=auth("teacher"))
    assert [j["id"] for j in response.json()["journals"]] == [school.journal]

    response = await client.get(f"/api/v1/teachers/{school.teacher}/journals", headers=auth("other_teacher"))
    assert response.status_code == 403


async def test_delete_journal(client: AsyncClient, school, auth, lesson_id) -> None:
    response = await client.delete(f"/api/v1/journals/{school.journal}", headers=auth("teacher"))
    assert response.status_code == 200

    response = await client.get(f"/api/v1/journals/{school.journal}", headers=auth("admin"))
    assert response.status_code == 404
    response = await client.get(f"/api/v1/lessons/{lesson_id}", headers=auth("admin"))
    assert response.status_code == 404
