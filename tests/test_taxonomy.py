from httpx import AsyncClient


async def test_subjects(client: AsyncClient, school, auth) -> None:
    response = await client.post("/api/v1/subjects", json={"name": "Biology"}, headers=auth("admin"))
    assert response.status_code == 201
    subject_id = response.json()["subject"]["id"]

    response = await client.patch(f"/api/v1/subjects/{subject_id}", json={"name": "Biology II"}, headers=auth("admin"))
    assert response.json()["subject"]["name"] == "Biology II"

    response = await client.get("/api/v1/subjects", headers=auth("student"))
    assert [s["name"] for s in response.json()["subjects"]] == ["Biology II", "Mathematics"]

    response = await client.post("/api/v1/subjects", json={"name": "Art"}, headers=auth("teacher"))
    assert response.status_code == 403


async def test_grades_identifier_is_unique(client: AsyncClient, school, auth) -> None:
    response = await client.post("/api/v1/grades", json={"identifier": "A", "value": 5}, headers=auth("admin"))
    assert response.status_code == 201
    grade_id = response.json()["grade"]["id"]

    response = await client.post("/api/v1/grades", json={"identifier": "A", "value": 4}, headers=auth("admin"))
    assert response.status_code == 409
    assert response.json() == {"error": "a grade with specified identifier already exists"}

    response = await client.patch(f"/api/v1/grades/{grade_id}", json={"identifier": "5"}, headers=auth("admin"))
    assert response.status_code == 409


async def test_grade_validation(client: AsyncClient, school, auth) -> None:
    response = await client.post("/api/v1/grades", json={"identifier": "ABCD", "value": 0}, headers=auth("admin"))
    assert response.status_code == 400
    assert set(response.json()["error"]) == {"identifier", "value"}


async def test_grades_sorted_by_value(client: AsyncClient, school, auth) -> None:
    response = await client.get("/api/v1/grades", headers=auth("teacher"))
    assert [g["identifier"] for g in response.json()["grades"]] == ["5", "3"]


async def test_single_current_year(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/years", json={"display_name": "2027/2028", "courses": 3, "current": True}, headers=auth("admin")
    )
    assert response.status_code == 201
    new_year = response.json()["year"]
    assert new_year["current"] is True

    response = await client.get("/api/v1/years/current", headers=auth("student"))
    assert response.json()["year"]["id"] == new_year["id"]

    years = (await client.get("/api/v1/years", headers=auth("student"))).json()["years"]
    assert [y["current"] for y in years] == [False, True]

    response = await client.put(f"/api/v1/years/{school.year}/current", headers=auth("admin"))
    assert response.status_code == 200
    years = (await client.get("/api/v1/years", headers=auth("student"))).json()["years"]
    assert [y["current"] for y in years] == [True, False]


async def test_year_stats(client: AsyncClient, school, auth) -> None:
    response = await client.put(
        f"/api/v1/classes/{school.school_class}/years/{school.year}",
        json={"display_name": "7A"},
        headers=auth("admin"),
    )
    assert response.status_code == 200

    years = (await client.get("/api/v1/years", params={"stats": "true"}, headers=auth("admin"))).json()["years"]
    assert years[0]["stats"] == {"journal_count": 1, "student_count": 1}


async def test_year_courses_must_be_positive(client: AsyncClient, school, auth) -> None:
    response = await client.post("/api/v1/years", json={"display_name": "Bad", "courses": 0}, headers=auth("admin"))
    assert response.status_code == 400
    assert "courses" in response.json()["error"]


async def test_classes(client: AsyncClient, school, auth) -> None:
    response = await client.post(
        "/api/v1/classes", json={"name": "8B", "teacher_id": school.other_teacher}, headers=auth("admin")
    )
    assert response.status_code == 201
    class_id = response.json()["class"]["id"]

    response = await client.put(
        f"/api/v1/users/{school.other_student}/class", json={"class_id": class_id}, headers=auth("admin")
    )
    assert response.status_code == 200
    assert response.json()["class"]["id"] == class_id

    response = await client.get(f"/api/v1/classes/{class_id}/users", headers=auth("other_teacher"))
    assert [u["id"] for u in response.json()["users"]] == [school.other_student]

    response = await client.patch(f"/api/v1/classes/{class_id}", json={"archived": True}, headers=auth("admin"))
    assert response.json()["class"]["archived"] is True

    response = await client.put(
        f"/api/v1/users/{school.student}/class", json={"class_id": class_id}, headers=auth("admin")
    )
    assert response.status_code == 400
    assert response.json() == {"error": "class is archived"}
