from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.core.models import Mark


async def give_mark(client: AsyncClient, headers: dict, **body):
    return await client.post("/api/v1/marks", json=body, headers=headers)


async def test_insert_lesson_grade(client: AsyncClient, school, auth, lesson_id) -> None:
    response = await give_mark(
        client,
        auth("teacher"),
        user_id=school.student,
        type="lesson_grade",
        lesson_id=lesson_id,
        grade_id=school.grade_5,
        comment="Good work",
    )
    assert response.status_code == 201
    mark = response.json()["mark"]
    assert mark["current"] is True
    assert mark["deleted"] is False
    assert mark["previous_ids"] == []
    assert mark["course"] == 1
    assert mark["journal"]["id"] == school.journal
    assert mark["lesson"]["id"] == lesson_id
    assert mark["grade"] == {"id": school.grade_5, "identifier": "5", "value": 5}
    assert mark["by"] == {"id": school.teacher, "name": "Tiina Teacher"}


async def test_target_rules(client: AsyncClient, school, auth, lesson_id) -> None:
    headers = auth("teacher")
    # Graded types need a grade.
    response = await give_mark(client, headers, user_id=school.student, type="lesson_grade", lesson_id=lesson_id)
    assert response.status_code == 400
    # Absences must not carry one.
    response = await give_mark(
        client, headers, user_id=school.student, type="absent", lesson_id=lesson_id, grade_id=school.grade_5
    )
    assert response.status_code == 400
    # Course grades need a journal and a course, not a lesson.
    response = await give_mark(
        client, headers, user_id=school.student, type="course_grade", lesson_id=lesson_id, grade_id=school.grade_5
    )
    assert response.status_code == 400
    response = await give_mark(
        client,
        headers,
        user_id=school.student,
        type="course_grade",
        journal_id=school.journal,
        course=9,
        grade_id=school.grade_5,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "course must be between 1 and the number of courses in the year"}

    response = await give_mark(
        client,
        headers,
        user_id=school.student,
        type="course_grade",
        journal_id=school.journal,
        course=1,
        grade_id=school.grade_5,
    )
    assert response.status_code == 201
    assert response.json()["mark"]["lesson"] is None
    assert response.json()["mark"]["course"] == 1


async def test_subject_grade_defaults_to_journal_subject(client: AsyncClient, school, auth) -> None:
    response = await give_mark(
        client,
        auth("teacher"),
        user_id=school.student,
        type="subject_grade",
        journal_id=school.journal,
        grade_id=school.grade_3,
    )
    assert response.status_code == 201
    mark = response.json()["mark"]
    assert mark["subject"] == {"id": school.subject, "name": "Mathematics"}
    assert mark["lesson"] is None


async def test_notice_on_journal(client: AsyncClient, school, auth) -> None:
    response = await give_mark(
        client, auth("teacher"), user_id=school.student, type="notice_good", journal_id=school.journal, comment="Helpful"
    )
    assert response.status_code == 201
    assert response.json()["mark"]["grade"] is None


async def test_student_must_be_in_journal(client: AsyncClient, school, auth, lesson_id) -> None:
    response = await give_mark(
        client, auth("teacher"), user_id=school.other_student, type="absent", lesson_id=lesson_id
    )
    assert response.status_code == 400
    assert response.json() == {"error": "user not in journal"}

    response = await give_mark(client, auth("teacher"), user_id=school.parent, type="absent", lesson_id=lesson_id)
    assert response.status_code == 400
    assert response.json() == {"error": "not a student"}


async def test_only_journal_teacher_gives_marks(client: AsyncClient, school, auth, lesson_id) -> None:
    body = {"user_id": school.student, "type": "late", "lesson_id": lesson_id}
    assert (await give_mark(client, auth("other_teacher"), **body)).status_code == 403
    assert (await give_mark(client, auth("student"), **body)).status_code == 403
    assert (await give_mark(client, auth("admin"), **body)).status_code == 201


async def test_single_absence_per_lesson(client: AsyncClient, school, auth, lesson_id) -> None:
    body = {"user_id": school.student, "type": "absent", "lesson_id": lesson_id}
    assert (await give_mark(client, auth("teacher"), **body)).status_code == 201
    response = await give_mark(client, auth("teacher"), **body)
    assert response.status_code == 409
    assert response.json() == {"error": "student already has a mark of this type for the lesson"}


async def test_correction_supersedes(client: AsyncClient, db_session: AsyncSession, school, auth, lesson_id) -> None:
    created = await give_mark(
        client, auth("teacher"), user_id=school.student, type="lesson_grade", lesson_id=lesson_id, grade_id=school.grade_3
    )
    first_id = created.json()["mark"]["id"]

    response = await client.patch(
        f"/api/v1/marks/{first_id}", json={"grade_id": school.grade_5}, headers=auth("teacher")
    )
    assert response.status_code == 200
    second = response.json()["mark"]
    assert second["id"] != first_id
    assert second["previous_ids"] == [first_id]
    assert second["grade"]["identifier"] == "5"
    assert second["current"] is True

    response = await client.patch(
        f"/api/v1/marks/{second['id']}", json={"comment": "Re-checked"}, headers=auth("teacher")
    )
    third = response.json()["mark"]
    assert third["previous_ids"] == [first_id, second["id"]]
    assert third["grade"]["identifier"] == "5"
    assert third["comment"] == "Re-checked"

    old = (await client.get(f"/api/v1/marks/{first_id}", headers=auth("teacher"))).json()["mark"]
    assert old["current"] is False
    assert old["deleted"] is False

    history = (await client.get(f"/api/v1/marks/{third['id']}/previous", headers=auth("student"))).json()["marks"]
    assert [m["id"] for m in history] == [first_id, second["id"]]

    # Exactly one live mark in the chain.
    live = await db_session.execute(
        select(func.count()).select_from(Mark).where(Mark.current.is_(True), Mark.deleted.is_(False))
    )
    assert live.scalar_one() == 1


async def test_correcting_a_superseded_mark_fails(client: AsyncClient, school, auth, lesson_id) -> None:
    created = await give_mark(
        client, auth("teacher"), user_id=school.student, type="lesson_grade", lesson_id=lesson_id, grade_id=school.grade_3
    )
    first_id = created.json()["mark"]["id"]
    await client.patch(f"/api/v1/marks/{first_id}", json={"grade_id": school.grade_5}, headers=auth("teacher"))

    response = await client.patch(f"/api/v1/marks/{first_id}", json={"comment": "late edit"}, headers=auth("teacher"))
    assert response.status_code == 400
    assert response.json() == {"error": "mark is not current"}


async def test_correction_keeps_target_kind(client: AsyncClient, school, auth, lesson_id) -> None:
    created = await give_mark(client, auth("teacher"), user_id=school.student, type="absent", lesson_id=lesson_id)
    mark_id = created.json()["mark"]["id"]

    response = await client.patch(f"/api/v1/marks/{mark_id}", json={"type": "late"}, headers=auth("teacher"))
    assert response.status_code == 200
    assert response.json()["mark"]["type"] == "late"

    response = await client.patch(
        f"/api/v1/marks/{response.json()['mark']['id']}",
        json={"type": "notice_bad"},
        headers=auth("teacher"),
    )
    assert response.status_code == 400


async def test_soft_delete(client: AsyncClient, school, auth, lesson_id) -> None:
    created = await give_mark(client, auth("teacher"), user_id=school.student, type="late", lesson_id=lesson_id)
    mark_id = created.json()["mark"]["id"]

    response = await client.delete(f"/api/v1/marks/{mark_id}", headers=auth("teacher"))
    assert response.status_code == 200
    mark = response.json()["mark"]
    assert mark["deleted"] is True
    assert mark["current"] is False

    response = await client.delete(f"/api/v1/marks/{mark_id}", headers=auth("teacher"))
    assert response.status_code == 400
    assert response.json() == {"error": "mark is deleted"}

    response = await client.patch(f"/api/v1/marks/{mark_id}", json={"comment": "x"}, headers=auth("teacher"))
    assert response.status_code == 400

    # The slot is free again.
    again = await give_mark(client, auth("teacher"), user_id=school.student, type="late", lesson_id=lesson_id)
    assert again.status_code == 201

    current = (await client.get(f"/api/v1/students/{school.student}/marks", headers=auth("student"))).json()["marks"]
    assert [m["id"] for m in current] == [again.json()["mark"]["id"]]
    everything = (
        await client.get(f"/api/v1/students/{school.student}/marks", params={"all": "true"}, headers=auth("student"))
    ).json()["marks"]
    assert len(everything) == 2


async def test_archived_journal_rejects_marks(client: AsyncClient, school, auth, lesson_id) -> None:
    await client.patch(f"/api/v1/journals/{school.journal}", json={"archived": True}, headers=auth("teacher"))
    response = await give_mark(client, auth("teacher"), user_id=school.student, type="absent", lesson_id=lesson_id)
    assert response.status_code == 400
    assert response.json() == {"error": "journal is archived"}


async def test_mark_writes_touch_journal(client: AsyncClient, school, auth, lesson_id) -> None:
    before = (await client.get(f"/api/v1/journals/{school.journal}", headers=auth("teacher"))).json()["journal"]
    await give_mark(client, auth("teacher"), user_id=school.student, type="absent", lesson_id=lesson_id)
    after = (await client.get(f"/api/v1/journals/{school.journal}", headers=auth("teacher"))).json()["journal"]
    assert after["last_updated"] >= before["last_updated"]


async def test_excuse_absence(client: AsyncClient, school, auth, lesson_id) -> None:
    created = await give_mark(client, auth("teacher"), user_id=school.student, type="absent", lesson_id=lesson_id)
    mark_id = created.json()["mark"]["id"]
    url = f"/api/v1/students/{school.student}/excuses"

    response = await client.post(url, json={"mark_id": mark_id, "excuse": "Dentist"}, headers=auth("other_student"))
    assert response.status_code == 403

    response = await client.post(url, json={"mark_id": mark_id, "excuse": "Dentist"}, headers=auth("parent"))
    assert response.status_code == 201
    excuse = response.json()["excuse"]
    assert excuse["excuse"] == "Dentist"
    assert excuse["by"]["id"] == school.parent

    response = await client.post(url, json={"mark_id": mark_id, "excuse": "Again"}, headers=auth("parent"))
    assert response.status_code == 409
    assert response.json() == {"error": "absence already excused"}

    absences = (await client.get(f"/api/v1/students/{school.student}/absences", headers=auth("parent"))).json()
    assert absences["absences"][0]["excuse"]["excuse"] == "Dentist"

    response = await client.delete(f"{url}/{excuse['id']}", headers=auth("parent"))
    assert response.status_code == 200
    absences = (await client.get(f"/api/v1/students/{school.student}/absences", headers=auth("parent"))).json()
    assert absences["absences"][0]["excuse"] is None

    # Removing the excuse frees the absence for a new one.
    response = await client.post(url, json={"mark_id": mark_id, "excuse": "Flu"}, headers=auth("parent"))
    assert response.status_code == 201
    assert response.json()["excuse"]["excuse"] == "Flu"


async def test_correcting_an_excused_absence_keeps_the_excuse(client: AsyncClient, school, auth, lesson_id) -> None:
    created = await give_mark(client, auth("teacher"), user_id=school.student, type="absent", lesson_id=lesson_id)
    first_id = created.json()["mark"]["id"]
    response = await client.post(
        f"/api/v1/students/{school.student}/excuses",
        json={"mark_id": first_id, "excuse": "Doctor"},
        headers=auth("parent"),
    )
    assert response.status_code == 201

    response = await client.patch(
        f"/api/v1/marks/{first_id}", json={"comment": "Left after the first hour"}, headers=auth("teacher")
    )
    assert response.status_code == 200
    corrected = response.json()["mark"]
    assert corrected["previous_ids"] == [first_id]
    assert corrected["excuse"]["excuse"] == "Doctor"
    assert corrected["excuse"]["mark_id"] == corrected["id"]

    absences = (await client.get(f"/api/v1/students/{school.student}/absences", headers=auth("parent"))).json()
    assert [(a["id"], a["excuse"]["excuse"]) for a in absences["absences"]] == [(corrected["id"], "Doctor")]


async def test_excuse_needs_an_absence_of_that_student(client: AsyncClient, school, auth, lesson_id) -> None:
    created = await give_mark(client, auth("teacher"), user_id=school.student, type="late", lesson_id=lesson_id)
    response = await client.post(
        f"/api/v1/students/{school.student}/excuses",
        json={"mark_id": created.json()["mark"]["id"], "excuse": "Bus"},
        headers=auth("admin"),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "not valid absence for user"}


async def test_journal_matrix(client: AsyncClient, school, auth, lesson_id) -> None:
    await client.post(
        f"/api/v1/users/{school.other_student}/journals", json={"journal_id": school.journal}, headers=auth("teacher")
    )
    await give_mark(
        client, auth("teacher"), user_id=school.student, type="lesson_grade", lesson_id=lesson_id, grade_id=school.grade_5
    )

    response = await client.get(f"/api/v1/journals/{school.journal}/matrix", headers=auth("teacher"))
    assert response.status_code == 200
    rows = {row["student"]["id"]: row["marks"] for row in response.json()["students"]}
    assert len(rows[school.student]) == 1
    assert rows[school.other_student] == []

    response = await client.get(f"/api/v1/journals/{school.journal}/matrix", headers=auth("other_teacher"))
    assert response.status_code == 403
