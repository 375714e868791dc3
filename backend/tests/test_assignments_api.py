import pytest

from conftest import auth_headers
from timetable_engine.models.teacher import Teacher


@pytest.fixture()
def school(seed):
    year = seed.year()
    grade_10 = seed.unit("Grade 10")
    grade_10a = seed.unit("10-A", parent=grade_10)
    english = seed.subject("English", code="ENG")
    maths = seed.subject("Mathematics", code="MATH")
    science = seed.subject("Science", code="SCI")
    return {
        "year": year,
        "grade_10": grade_10,
        "grade_10a": grade_10a,
        "english": english,
        "maths": maths,
        "science": science,
        "singh": seed.teacher("Mr. Singh"),
        "gupta": seed.teacher("Ms. Gupta"),
        "lee": seed.teacher("Mr. Lee"),
        "rao": seed.teacher("Ms. Rao", max_per_week=30),
    }


def assign_class_teacher(client, headers, school, teacher_key, is_primary=True, **extra):
    payload = {
        "academicYearId": school["year"].id,
        "academicUnitId": school["grade_10a"].id,
        "teacherId": school[teacher_key].id,
        "isPrimary": is_primary,
    }
    payload.update(extra)
    return client.post("/api/class-teachers", json=payload, headers=headers)


def assign_subject(client, headers, school, subject_key, teacher_key="rao", unit_key="grade_10a", **extra):
    payload = {
        "academicYearId": school["year"].id,
        "academicUnitId": school[unit_key].id,
        "subjectId": school[subject_key].id,
        "teacherId": school[teacher_key].id,
    }
    payload.update(extra)
    return client.post("/api/teacher-assignments", json=payload, headers=headers)


def test_primary_class_teacher_is_unique(client, admin_headers, school):
    created = assign_class_teacher(client, admin_headers, school, "singh")
    assert created.status_code == 201
    assert created.json()["message"] == "Mr. Singh assigned as class teacher for 10-A"

    rejected = assign_class_teacher(client, admin_headers, school, "gupta")
    assert rejected.status_code == 400
    body = rejected.json()
    assert body["success"] is False
    assert body["errors"] == ["This class already has a primary class teacher: Mr. Singh"]


def test_co_class_teacher_replacement_needs_confirmation(client, admin_headers, school):
    first = assign_class_teacher(client, admin_headers, school, "gupta", is_primary=False)
    assert first.status_code == 201
    assert first.json()["message"] == "Ms. Gupta assigned as co-class teacher for 10-A"
    first_id = first.json()["data"]["id"]

    unconfirmed = assign_class_teacher(client, admin_headers, school, "lee", is_primary=False)
    assert unconfirmed.status_code == 400
    assert unconfirmed.json()["requiresConfirmation"] is True
    assert unconfirmed.json()["warnings"] == [
        "This class already has a co-class teacher: Ms. Gupta. This will replace them."
    ]

    confirmed = assign_class_teacher(client, admin_headers, school, "lee", is_primary=False, overrideWarnings=True)
    assert confirmed.status_code == 201

    replaced = client.get(
        f"/api/class-teachers/{first_id}", params={"includeHistory": "true"}, headers=admin_headers
    ).json()["data"]
    assert replaced["isActive"] is False
    assert replaced["effectiveTo"] is not None
    actions = {entry["action"]: entry for entry in replaced["history"]}
    assert set(actions) == {"CREATED", "DEACTIVATED"}
    assert actions["DEACTIVATED"]["changeReason"] == "Replaced by a new co-class teacher"

    active = client.get(
        "/api/class-teachers", params={"academicUnitId": school["grade_10a"].id}, headers=admin_headers
    ).json()["data"]
    assert [item["teacherId"] for item in active] == [school["lee"].id]


def test_class_teacher_deactivate_and_reactivate(client, admin_headers, school):
    row = assign_class_teacher(client, admin_headers, school, "singh").json()["data"]

    deactivated = client.delete(
        f"/api/class-teachers/{row['id']}", params={"reason": "Transferred"}, headers=admin_headers
    )
    assert deactivated.status_code == 200
    assert deactivated.json()["message"] == "Class teacher assignment deactivated for 10-A"
    assert deactivated.json()["data"]["isActive"] is False

    assert assign_class_teacher(client, admin_headers, school, "gupta").status_code == 201

    blocked = client.patch(f"/api/class-teachers/{row['id']}", json={"isActive": True}, headers=admin_headers)
    assert blocked.status_code == 400
    assert blocked.json()["errors"] == ["This class already has a primary class teacher: Ms. Gupta"]


def test_subject_assignment_workload_flow(client, admin_headers, school):
    first = assign_subject(client, admin_headers, school, "english", periodsPerWeek=29)
    assert first.status_code == 201
    assert first.json()["message"] == "Ms. Rao assigned to teach English in 10-A"

    warned = assign_subject(client, admin_headers, school, "maths", periodsPerWeek=2)
    assert warned.status_code == 400
    assert warned.json()["requiresConfirmation"] is True
    assert warned.json()["warnings"] == [
        "Adding 2 periods will exceed teacher's weekly limit (current: 29, max: 30)"
    ]

    confirmed = assign_subject(client, admin_headers, school, "maths", periodsPerWeek=2, overrideWarnings=True)
    assert confirmed.status_code == 201

    summary = client.get(
        f"/api/teachers/{school['rao'].id}/workload",
        params={"academicYearId": school["year"].id},
        headers=admin_headers,
    ).json()["data"]
    assert summary["currentPeriodsPerWeek"] == 31
    assert summary["assignmentCount"] == 2

    blocked = assign_subject(client, admin_headers, school, "science", periodsPerWeek=16, overrideWarnings=True)
    assert blocked.status_code == 400
    assert blocked.json()["errors"] == [
        "Cannot assign - teacher would exceed 150% of weekly period limit (current: 31, adding: 16, max: 30)"
    ]


def test_duplicate_subject_assignment_is_rejected(client, admin_headers, school):
    assert assign_subject(client, admin_headers, school, "english", periodsPerWeek=4).status_code == 201

    duplicate = assign_subject(client, admin_headers, school, "english", periodsPerWeek=4)

    assert duplicate.status_code == 400
    assert duplicate.json()["errors"] == ["This teacher is already assigned to this subject for this class"]


def test_subject_assignment_update_and_deactivate(client, admin_headers, db, school):
    row = assign_subject(client, admin_headers, school, "english", periodsPerWeek=4).json()["data"]

    updated = client.patch(
        f"/api/teacher-assignments/{row['id']}",
        json={"periodsPerWeek": 6, "changeReason": "Extra lab"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["message"] == "Teacher assignment updated"
    db.expire_all()
    assert db.get(Teacher, school["rao"].id).current_periods_per_week == 6

    deactivated = client.delete(f"/api/teacher-assignments/{row['id']}", headers=admin_headers)
    assert deactivated.json()["message"] == "Assignment deactivated: Ms. Rao - English - 10-A"
    db.expire_all()
    assert db.get(Teacher, school["rao"].id).current_periods_per_week == 0

    reactivated = client.patch(
        f"/api/teacher-assignments/{row['id']}", json={"isActive": True}, headers=admin_headers
    )
    assert reactivated.json()["message"] == "Assignment reactivated: Ms. Rao - English"
    db.expire_all()
    assert db.get(Teacher, school["rao"].id).current_periods_per_week == 6

    detail = client.get(
        f"/api/teacher-assignments/{row['id']}", params={"includeHistory": "true"}, headers=admin_headers
    ).json()["data"]
    assert sorted(entry["action"] for entry in detail["history"]) == [
        "CREATED",
        "DEACTIVATED",
        "MODIFIED",
        "REACTIVATED",
    ]
    modified = next(entry for entry in detail["history"] if entry["action"] == "MODIFIED")
    assert modified["previousData"]["periods_per_week"] == 4
    assert modified["newData"]["periods_per_week"] == 6
    assert modified["changeReason"] == "Extra lab"


def test_reassigning_moves_workload(client, admin_headers, db, school):
    row = assign_subject(client, admin_headers, school, "english", periodsPerWeek=5).json()["data"]

    response = client.patch(
        f"/api/teacher-assignments/{row['id']}", json={"teacherId": school["lee"].id}, headers=admin_headers
    )

    assert response.status_code == 200
    db.expire_all()
    assert db.get(Teacher, school["rao"].id).current_periods_per_week == 0
    assert db.get(Teacher, school["lee"].id).current_periods_per_week == 5


def test_raising_periods_is_checked_against_workload_caps(client, admin_headers, db, school):
    row = assign_subject(client, admin_headers, school, "english", periodsPerWeek=5).json()["data"]
    url = f"/api/teacher-assignments/{row['id']}"

    over_ceiling = client.patch(url, json={"periodsPerWeek": 60, "overrideWarnings": True}, headers=admin_headers)
    assert over_ceiling.status_code == 400
    assert over_ceiling.json()["errors"] == [
        "Cannot assign - teacher would exceed 150% of weekly period limit (current: 5, adding: 55, max: 30)"
    ]
    db.expire_all()
    assert db.get(Teacher, school["rao"].id).current_periods_per_week == 5

    unconfirmed = client.patch(url, json={"periodsPerWeek": 32}, headers=admin_headers)
    assert unconfirmed.status_code == 400
    assert unconfirmed.json()["requiresConfirmation"] is True
    assert unconfirmed.json()["warnings"] == [
        "Adding 27 periods will exceed teacher's weekly limit (current: 5, max: 30)"
    ]

    confirmed = client.patch(url, json={"periodsPerWeek": 32, "overrideWarnings": True}, headers=admin_headers)
    assert confirmed.status_code == 200
    db.expire_all()
    assert db.get(Teacher, school["rao"].id).current_periods_per_week == 32

    lowered = client.patch(url, json={"periodsPerWeek": 10}, headers=admin_headers)
    assert lowered.status_code == 200


def test_demoting_primary_replaces_co_class_teacher(client, admin_headers, school):
    singh = assign_class_teacher(client, admin_headers, school, "singh").json()["data"]
    gupta = assign_class_teacher(client, admin_headers, school, "gupta", is_primary=False).json()["data"]
    url = f"/api/class-teachers/{singh['id']}"

    unconfirmed = client.patch(url, json={"isPrimary": False}, headers=admin_headers)
    assert unconfirmed.status_code == 400
    assert unconfirmed.json()["warnings"] == [
        "This class already has a co-class teacher: Ms. Gupta. This will replace them."
    ]

    confirmed = client.patch(url, json={"isPrimary": False, "overrideWarnings": True}, headers=admin_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["data"]["isPrimary"] is False
    assert confirmed.json()["data"]["isActive"] is True

    replaced = client.get(
        f"/api/class-teachers/{gupta['id']}", params={"includeHistory": "true"}, headers=admin_headers
    ).json()["data"]
    assert replaced["isActive"] is False
    deactivation = next(entry for entry in replaced["history"] if entry["action"] == "DEACTIVATED")
    assert deactivation["changeReason"] == "Replaced by a new co-class teacher"

    active = client.get(
        "/api/class-teachers", params={"academicUnitId": school["grade_10a"].id}, headers=admin_headers
    ).json()["data"]
    assert [(item["teacherId"], item["isPrimary"]) for item in active] == [(school["singh"].id, False)]


def test_other_school_ids_are_not_found(client, admin_headers, db, seed, school):
    outsider = seed.teacher("Mr. Khan", school_id="school-2")
    foreign_subject = seed.subject("Latin", code="LAT", school_id="school-2")

    with_outsider = {**school, "khan": outsider, "latin": foreign_subject}

    subject_response = assign_subject(client, admin_headers, with_outsider, "english", "khan", periodsPerWeek=12)
    assert subject_response.status_code == 404
    db.expire_all()
    assert db.get(Teacher, outsider.id).current_periods_per_week == 0

    foreign_subject_response = assign_subject(client, admin_headers, with_outsider, "latin")
    assert foreign_subject_response.status_code == 404

    class_response = assign_class_teacher(client, admin_headers, with_outsider, "khan")
    assert class_response.status_code == 404

    row = assign_subject(client, admin_headers, school, "english", periodsPerWeek=4).json()["data"]
    moved = client.patch(
        f"/api/teacher-assignments/{row['id']}", json={"teacherId": outsider.id}, headers=admin_headers
    )
    assert moved.status_code == 404

    check = client.post(
        "/api/teacher-assignments/validate",
        json={
            "type": "subject-teacher",
            "academicYearId": school["year"].id,
            "academicUnitId": school["grade_10a"].id,
            "subjectId": school["english"].id,
            "teacherId": outsider.id,
        },
        headers=admin_headers,
    ).json()["data"]
    assert check["isValid"] is False
    assert check["errors"] == ["Cannot assign an inactive teacher"]


def test_validate_endpoint(client, admin_headers, school):
    subject_check = client.post(
        "/api/teacher-assignments/validate",
        json={
            "type": "subject-teacher",
            "academicYearId": school["year"].id,
            "academicUnitId": school["grade_10a"].id,
            "subjectId": school["english"].id,
            "teacherId": school["rao"].id,
            "periodsPerWeek": 31,
        },
        headers=admin_headers,
    ).json()["data"]
    assert subject_check["isValid"] is True
    assert len(subject_check["warnings"]) == 1

    class_check = client.post(
        "/api/teacher-assignments/validate",
        json={
            "type": "class-teacher",
            "academicYearId": school["year"].id,
            "academicUnitId": school["grade_10a"].id,
            "teacherId": school["singh"].id,
        },
        headers=admin_headers,
    ).json()["data"]
    assert class_check == {"isValid": True, "errors": [], "warnings": []}

    bulk = client.post(
        "/api/teacher-assignments/validate",
        json={
            "type": "bulk",
            "academicYearId": school["year"].id,
            "assignments": [
                {"academicUnitId": school["grade_10a"].id, "subjectId": school["maths"].id, "teacherId": school["rao"].id},
                {"academicUnitId": school["grade_10a"].id, "subjectId": school["maths"].id, "teacherId": "missing"},
            ],
        },
        headers=admin_headers,
    ).json()["data"]
    assert bulk["totalCount"] == 2
    assert bulk["validCount"] == 1
    assert bulk["invalidCount"] == 1
    assert bulk["invalid"][0]["errors"] == ["Cannot assign an inactive teacher"]

    missing_fields = client.post(
        "/api/teacher-assignments/validate",
        json={"type": "class-teacher", "academicYearId": school["year"].id},
        headers=admin_headers,
    )
    assert missing_fields.status_code == 422


def test_inherited_teachers_endpoint(client, admin_headers, school):
    parent_row = assign_subject(client, admin_headers, school, "english", unit_key="grade_10").json()["data"]

    response = client.get(
        "/api/teacher-assignments/inherited",
        params={
            "academicUnitId": school["grade_10a"].id,
            "subjectId": school["english"].id,
            "academicYearId": school["year"].id,
        },
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["inherited"] is True
    assert [item["id"] for item in response.json()["data"]] == [parent_row["id"]]


def test_teachers_only_see_their_own_assignments(client, admin_headers, school):
    assign_subject(client, admin_headers, school, "english", teacher_key="rao")
    assign_subject(client, admin_headers, school, "maths", teacher_key="lee")
    rao_headers = auth_headers(role="teacher", user_id="user-rao", teacher_id=school["rao"].id)

    rows = client.get("/api/teacher-assignments", headers=rao_headers).json()["data"]
    assert [item["teacherId"] for item in rows] == [school["rao"].id]

    assert assign_subject(client, rao_headers, school, "science").status_code == 403

    own = client.get(
        f"/api/teachers/{school['rao'].id}/workload",
        params={"academicYearId": school["year"].id},
        headers=rao_headers,
    )
    assert own.status_code == 200
    other = client.get(
        f"/api/teachers/{school['lee'].id}/workload",
        params={"academicYearId": school["year"].id},
        headers=rao_headers,
    )
    assert other.status_code == 403


def test_school_workloads_and_recalculate(client, admin_headers, db, school):
    assign_subject(client, admin_headers, school, "english", periodsPerWeek=7)
    teacher = db.get(Teacher, school["rao"].id)
    teacher.current_periods_per_week = 99
    db.commit()

    recalculated = client.post(
        f"/api/teachers/{school['rao'].id}/workload/recalculate",
        params={"academicYearId": school["year"].id},
        headers=admin_headers,
    )
    assert recalculated.status_code == 200
    assert recalculated.json()["data"]["currentPeriodsPerWeek"] == 7

    rows = client.get(
        "/api/teachers/workloads", params={"academicYearId": school["year"].id}, headers=admin_headers
    ).json()["data"]
    assert {row["teacherName"] for row in rows} == {"Mr. Singh", "Ms. Gupta", "Mr. Lee", "Ms. Rao"}

    projected = client.get(
        f"/api/teachers/{school['rao'].id}/workload/projected",
        params={"additionalPeriods": 30},
        headers=admin_headers,
    ).json()["data"]
    assert projected == {"current": 7, "projected": 37, "max": 30, "exceedsLimit": True, "exceedsHardLimit": False}


def test_assignment_history_endpoints(client, admin_headers, school):
    assign_class_teacher(client, admin_headers, school, "singh")
    row = assign_subject(client, admin_headers, school, "english", periodsPerWeek=4).json()["data"]
    client.delete(f"/api/teacher-assignments/{row['id']}", headers=admin_headers)

    recent = client.get("/api/assignment-history", headers=admin_headers).json()["data"]
    assert len(recent) == 3

    scoped = client.get(
        "/api/assignment-history", params={"category": "CLASS_TEACHER"}, headers=admin_headers
    ).json()["data"]
    assert [item["assignmentCategory"] for item in scoped] == ["CLASS_TEACHER"]

    report = client.get("/api/assignment-history/report", headers=admin_headers).json()["data"]
    assert report["totalChanges"] == 3
    assert report["changesByAction"] == {"CREATED": 2, "DEACTIVATED": 1}
    assert report["changesByCategory"] == {"CLASS_TEACHER": 1, "SUBJECT_TEACHER": 2}

    teacher_headers = auth_headers(role="teacher", user_id="user-rao", teacher_id=school["rao"].id)
    assert client.get("/api/assignment-history", headers=teacher_headers).status_code == 403
