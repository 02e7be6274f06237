from httpx import AsyncClient


async def test_create_lesson(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/lessons",
        json={"journal_id": school.journal, "description": "Decimals", "date": "2026-10-13", "course": 2},
        headers=auth("teacher"),
    )
    assert response.status_code == 201
    lesson = response.json()["lesson"]
    assert lesson["date"] == "2026-10-13"
    assert lesson["course"] == 2
    assert lesson["version"] == 1
    assert lesson["journal"] == {"id": school.journal, "name": "Mathematics 7A", "archived": False}
    assert lesson["subject"]["name"] == "Mathematics"

    journal = (await client.get(f"/api/v1/journals/{school.journal}", headers=auth("teacher"))).json()["journal"]
    assert journal["courses"] == [2]


async def test_course_must_fit_the_year(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/lessons",
        json={"journal_id": school.journal, "date": "2026-10-13", "course": 5},
        headers=auth("teacher"),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "course must be between 1 and the number of courses in the year"}


async def test_invalid_date_format(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/lessons",
        json={"journal_id": school.journal, "date": "13.10.2026", "course": 1},
        headers=auth("teacher"),
    )
    assert response.status_code == 400
    assert "date" in response.json()["error"]


async def test_only_journal_teacher_writes_lessons(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/lessons",
        json={"journal_id": school.journal, "date": "2026-10-13", "course": 1},
        headers=auth("other_teacher"),
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/lessons",
        json={"journal_id": school.journal, "date": "2026-10-13", "course": 1},
        headers=auth("admin"),
    )
    assert response.status_code == 201


async def test_update_lesson_edit_conflict(client: AsyncClient, school, auth, lesson_id) -> None:
    url = f"/api/v1/lessons/{lesson_id}"
    first = await client.patch(url, json={"version": 1, "description": "Fractions, part 2"}, headers=auth("teacher"))
    assert first.status_code == 200
    assert first.json()["lesson"]["version"] == 2

    second = await client.patch(url, json={"version": 1, "description": "Something else"}, headers=auth("teacher"))
    assert second.status_code == 409
    assert second.json() == {"error": "edit conflict, please try again"}

    current = (await client.get(url, headers=auth("teacher"))).json()["lesson"]
    assert current["description"] == "Fractions, part 2"
    assert current["version"] == 2


async def test_list_lessons_newest_first(client: AsyncClient, school, auth, lesson_id) -> None:
    for day, course in (("2026-10-14", 1), ("2026-10-05", 2)):
        response = await client.post(
            "/api/v1/lessons",
            json={"journal_id": school.journal, "date": day, "course": course},
            headers=auth("teacher"),
        )
        assert response.status_code == 201

    response = await client.get(f"/api/v1/journals/{school.journal}/lessons", headers=auth("student"))
    assert [lesson["date"] for lesson in response.json()["lessons"]] == ["2026-10-14", "2026-10-12", "2026-10-05"]

    response = await client.get(
        f"/api/v1/journals/{school.journal}/lessons", params={"course": 1}, headers=auth("student")
    )
    assert [lesson["date"] for lesson in response.json()["lessons"]] == ["2026-10-14", "2026-10-12"]


async def test_delete_lesson(client: AsyncClient, school, auth, lesson_id) -> None:
    response = await client.delete(f"/api/v1/lessons/{lesson_id}", headers=auth("teacher"))
    assert response.status_code == 200
    response = await client.get(f"/api/v1/lessons/{lesson_id}", headers=auth("teacher"))
    assert response.status_code == 404
    assert response.json() == {"error": "no such lesson"}
