import pytest

from conftest import auth_headers
from timetable_engine.models.timetable import TimetableStatus


@pytest.fixture()
def school(seed):
    year = seed.year()
    template = seed.template(periods_per_day=6)
    grade_8a = seed.unit("8-A")
    grade_9b = seed.unit("9-B")
    maths = seed.subject("Mathematics", code="MATH", credits_per_week=1)
    science = seed.subject("Science", code="SCI")
    rao = seed.teacher("Ms. Rao", subjects=[maths])
    lee = seed.teacher("Mr. Lee", subjects=[maths, science])
    return {
        "year": year,
        "template": template,
        "grade_8a": grade_8a,
        "grade_9b": grade_9b,
        "maths": maths,
        "science": science,
        "rao": rao,
        "lee": lee,
    }


def create_timetable(client, headers, school, unit_key):
    response = client.post(
        "/api/timetable",
        json={
            "academicUnitId": school[unit_key].id,
            "academicYearId": school["year"].id,
            "templateId": school["template"].id,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


def save_slot(client, headers, timetable_id, day, period, subject, teacher, **extra):
    payload = {
        "timetableId": timetable_id,
        "dayOfWeek": day,
        "periodNumber": period,
        "subjectId": subject.id if subject is not None else None,
        "teacherId": teacher.id if teacher is not None else None,
    }
    payload.update(extra)
    return client.post("/api/timetable/slots", json=payload, headers=headers)


def test_create_timetable_reuses_existing_draft(client, admin_headers, school):
    first = create_timetable(client, admin_headers, school, "grade_8a")
    assert first["name"] == "8-A - Weekday"
    assert first["status"] == "DRAFT"

    again = client.post(
        "/api/timetable",
        json={
            "academicUnitId": school["grade_8a"].id,
            "academicYearId": school["year"].id,
            "templateId": school["template"].id,
        },
        headers=admin_headers,
    )
    assert again.json()["message"] == "A draft timetable already exists"
    assert again.json()["data"]["id"] == first["id"]


def test_create_timetable_unknown_unit(client, admin_headers, school):
    response = client.post(
        "/api/timetable",
        json={"academicUnitId": "missing", "academicYearId": school["year"].id, "templateId": school["template"].id},
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_save_slot_and_read_back(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")

    response = save_slot(client, admin_headers, timetable["id"], "MONDAY", 3, school["maths"], school["rao"], room="R-12")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["teacher"]["fullName"] == "Ms. Rao"
    assert body["data"]["subject"]["code"] == "MATH"
    assert body["data"]["room"] == "R-12"

    save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["science"], school["lee"])
    detail = client.get(f"/api/timetable/{timetable['id']}", headers=admin_headers).json()["data"]
    assert [(slot["dayOfWeek"], slot["periodNumber"]) for slot in detail["slots"]] == [("MONDAY", 1), ("MONDAY", 3)]


def test_teacher_double_booking_returns_conflicts(client, admin_headers, school):
    tt_8a = create_timetable(client, admin_headers, school, "grade_8a")
    tt_9b = create_timetable(client, admin_headers, school, "grade_9b")
    assert save_slot(client, admin_headers, tt_8a["id"], "MONDAY", 3, school["maths"], school["rao"]).status_code == 200

    response = save_slot(client, admin_headers, tt_9b["id"], "MONDAY", 3, school["maths"], school["rao"])

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Conflicts detected"
    assert len(body["conflicts"]) == 1
    conflict = body["conflicts"][0]
    assert conflict["type"] == "TEACHER_BUSY"
    assert conflict["hasConflict"] is True
    assert conflict["message"] == "Teacher is already assigned to 8-A for Mathematics at this time"
    assert conflict["details"]["conflictingSlot"]["className"] == "8-A"


def test_skip_conflict_check_allows_save(client, admin_headers, school):
    tt_8a = create_timetable(client, admin_headers, school, "grade_8a")
    tt_9b = create_timetable(client, admin_headers, school, "grade_9b")
    save_slot(client, admin_headers, tt_8a["id"], "MONDAY", 3, school["maths"], school["rao"])

    response = save_slot(
        client, admin_headers, tt_9b["id"], "MONDAY", 3, school["maths"], school["rao"], skipConflictCheck=True
    )
    assert response.status_code == 200


def test_resaving_a_slot_edits_it_in_place(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    first = save_slot(client, admin_headers, timetable["id"], "TUESDAY", 2, school["maths"], school["rao"]).json()

    second = save_slot(client, admin_headers, timetable["id"], "TUESDAY", 2, school["science"], school["lee"])

    assert second.status_code == 200
    assert second.json()["data"]["id"] == first["data"]["id"]
    assert second.json()["data"]["teacherId"] == school["lee"].id


def test_period_outside_template_is_rejected(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")

    response = save_slot(client, admin_headers, timetable["id"], "MONDAY", 7, school["maths"], school["rao"])

    assert response.status_code == 400
    assert "outside the template" in response.json()["message"]


def check_slot(client, headers, timetable_id, day, period, teacher):
    return client.post(
        "/api/timetable/slots/check",
        json={"timetableId": timetable_id, "dayOfWeek": day, "periodNumber": period, "teacherId": teacher.id},
        headers=headers,
    )


def test_check_slot_reports_without_saving(client, admin_headers, school):
    tt_8a = create_timetable(client, admin_headers, school, "grade_8a")
    tt_9b = create_timetable(client, admin_headers, school, "grade_9b")
    save_slot(client, admin_headers, tt_8a["id"], "MONDAY", 1, school["maths"], school["rao"])

    response = check_slot(client, admin_headers, tt_9b["id"], "MONDAY", 1, school["rao"])

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["hasConflicts"] is True
    assert [item["type"] for item in data["conflicts"]] == ["TEACHER_BUSY"]
    assert client.get(f"/api/timetable/{tt_9b['id']}", headers=admin_headers).json()["data"]["slots"] == []


def test_check_slot_matches_an_in_place_edit(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["maths"], school["rao"])

    check = check_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["lee"])
    assert check.json()["data"] == {"hasConflicts": False, "conflicts": []}

    saved = save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["science"], school["lee"])
    assert saved.status_code == 200


def test_other_school_teacher_or_subject_cannot_be_placed(client, admin_headers, seed, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    outsider = seed.teacher("Mr. Khan", school_id="school-2")
    latin = seed.subject("Latin", code="LAT", school_id="school-2")

    foreign_teacher = save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["maths"], outsider)
    assert foreign_teacher.status_code == 404

    foreign_subject = save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, latin, school["rao"])
    assert foreign_subject.status_code == 404

    assert check_slot(client, admin_headers, timetable["id"], "MONDAY", 1, outsider).status_code == 404
    assert client.get(f"/api/timetable/{timetable['id']}", headers=admin_headers).json()["data"]["slots"] == []


def test_delete_slot(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    slot = save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["maths"], school["rao"]).json()["data"]

    assert client.delete(f"/api/timetable/slots/{slot['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/timetable/slots/{slot['id']}", headers=admin_headers).status_code == 404


def test_publishing_archives_previous_version(client, admin_headers, school):
    first = create_timetable(client, admin_headers, school, "grade_8a")
    published = client.patch(f"/api/timetable/{first['id']}", json={"status": "PUBLISHED"}, headers=admin_headers)
    assert published.status_code == 200
    assert published.json()["message"] == "Timetable published successfully"
    assert published.json()["data"]["publishedBy"] == "admin-1"

    second = create_timetable(client, admin_headers, school, "grade_8a")
    assert second["id"] != first["id"]
    client.patch(f"/api/timetable/{second['id']}", json={"status": "PUBLISHED"}, headers=admin_headers)

    statuses = {
        item["id"]: item["status"]
        for item in client.get("/api/timetable", headers=admin_headers).json()["data"]
    }
    assert statuses[first["id"]] == TimetableStatus.ARCHIVED.value
    assert statuses[second["id"]] == TimetableStatus.PUBLISHED.value

    archived_edit = save_slot(client, admin_headers, first["id"], "MONDAY", 1, school["maths"], school["rao"])
    assert archived_edit.status_code == 400
    assert archived_edit.json()["message"] == "Cannot edit an archived timetable"


def test_published_timetable_cannot_be_deleted(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    client.patch(f"/api/timetable/{timetable['id']}", json={"status": "PUBLISHED"}, headers=admin_headers)

    response = client.delete(f"/api/timetable/{timetable['id']}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot delete a published timetable. Archive it instead."


def test_draft_timetable_can_be_deleted(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["maths"], school["rao"])

    assert client.delete(f"/api/timetable/{timetable['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/timetable/{timetable['id']}", headers=admin_headers).status_code == 404


def test_publish_gate_reports_missing_subjects(client, admin_headers, seed, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    seed.subject_assignment(school["grade_8a"], school["maths"], school["rao"], school["year"])

    check = client.get(f"/api/timetable/{timetable['id']}/publish-check", headers=admin_headers)
    assert check.json()["data"]["isValid"] is False
    assert check.json()["data"]["missingSubjects"] == [{"id": school["science"].id, "name": "Science"}]

    response = client.patch(
        f"/api/timetable/{timetable['id']}",
        json={"status": "PUBLISHED", "requireAllSubjects": True},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot publish - some subjects have no assigned teacher"
    assert response.json()["missingSubjects"][0]["name"] == "Science"


def test_distribution_endpoint(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["maths"], school["rao"])

    data = client.get(f"/api/timetable/{timetable['id']}/distribution", headers=admin_headers).json()["data"]

    by_code = {item["subjectCode"]: item for item in data}
    assert by_code["MATH"]["status"] == "OK"
    assert by_code["MATH"]["requiredPerWeek"] == 1


def test_available_teachers_endpoint(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    save_slot(client, admin_headers, timetable["id"], "MONDAY", 1, school["maths"], school["rao"])

    response = client.get(
        "/api/timetable/available-teachers",
        params={"dayOfWeek": "MONDAY", "periodNumber": 1, "subjectId": school["maths"].id},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert [item["fullName"] for item in response.json()["data"]] == ["Mr. Lee"]


def test_teachers_cannot_edit_slots(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    teacher_headers = auth_headers(role="teacher", user_id="user-rao", teacher_id=school["rao"].id)

    response = save_slot(client, teacher_headers, timetable["id"], "MONDAY", 1, school["maths"], school["rao"])
    assert response.status_code == 403

    assert client.get(f"/api/timetable/{timetable['id']}", headers=teacher_headers).status_code == 200


def test_requests_need_a_valid_token(client, school):
    assert client.get("/api/timetable").status_code in {401, 403}

    response = client.get("/api/timetable", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_other_school_cannot_see_timetable(client, admin_headers, school):
    timetable = create_timetable(client, admin_headers, school, "grade_8a")
    outsider = auth_headers(school_id="school-2", user_id="admin-2")

    assert client.get(f"/api/timetable/{timetable['id']}", headers=outsider).status_code == 404
    assert client.get("/api/timetable", headers=outsider).json()["data"] == []
