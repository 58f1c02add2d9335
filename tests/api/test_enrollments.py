"""Enrollment endpoints: staff writes, self-or-staff reads."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from classroom.main import app
from classroom.services.container import wire
from tests.conftest import BrokenCache, FakeClock, World, add_class, add_student, auth


def _enroll(client: TestClient, headers: dict, student_id, class_id):
    return client.post(
        "/v1/enrollments",
        json={"student_id": str(student_id), "class_id": str(class_id)},
        headers=headers,
    )


# ---- 401 / 403 ----


def test_add_rejects_missing_token(client: TestClient, world: World) -> None:
    resp = client.post(
        "/v1/enrollments",
        json={"student_id": str(world.student.id), "class_id": str(world.school_class.id)},
    )
    assert resp.status_code == 401


def test_add_rejects_student_role(
    client: TestClient, world: World, student_headers: dict
) -> None:
    resp = _enroll(client, student_headers, world.student.id, world.school_class.id)
    assert resp.status_code == 403


# ---- POST ----


def test_teacher_adds_student(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    resp = _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    assert resp.status_code == 201
    body = resp.json()
    assert body["student_id"] == str(world.student.id)
    assert body["status"] == "active"
    assert body["total_points"] == 0
    assert body["average_score"] == 0.0


def test_add_reports_success_when_cache_is_down(
    client: TestClient, world: World, teacher_headers: dict, clock: FakeClock
) -> None:
    app.state.services = wire(world.store, BrokenCache(), cache_ttl=60, clock=clock)

    resp = _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    assert resp.status_code == 201

    # A retry sees the committed membership.
    resp = _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    assert resp.status_code == 409


def test_duplicate_add_is_conflict(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    resp = _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_member"


def test_full_class_is_conflict(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    tiny = add_class(world.store, name="Tiny", capacity=1)
    _enroll(client, teacher_headers, world.student.id, tiny.id)
    resp = _enroll(client, teacher_headers, add_student(world.store, "Alex").id, tiny.id)
    assert resp.status_code == 409
    assert resp.json() == {"detail": "class is full", "code": "capacity_exceeded"}


def test_unknown_class_is_not_found(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    resp = _enroll(client, teacher_headers, world.student.id, uuid4())
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


# ---- DELETE ----


def test_remove_then_remove_again(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    path = f"/v1/enrollments/{world.school_class.id}/students/{world.student.id}"

    assert client.delete(path, headers=teacher_headers).status_code == 204
    resp = client.delete(path, headers=teacher_headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_a_member"

    record = client.get(path, headers=teacher_headers).json()
    assert record["status"] == "inactive"


# ---- PATCH ----


def test_patch_status(client: TestClient, world: World, teacher_headers: dict) -> None:
    _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    resp = client.patch(
        f"/v1/enrollments/{world.school_class.id}/students/{world.student.id}",
        json={"status": "suspended"},
        headers=teacher_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "suspended"


def test_patch_empty_body_is_bad_request(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    resp = client.patch(
        f"/v1/enrollments/{world.school_class.id}/students/{world.student.id}",
        json={},
        headers=teacher_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_argument"


def test_patch_unknown_status_is_unprocessable(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    resp = client.patch(
        f"/v1/enrollments/{world.school_class.id}/students/{world.student.id}",
        json={"status": "graduated"},
        headers=teacher_headers,
    )
    assert resp.status_code == 422


# ---- reads ----


def test_my_classes_and_stats(
    client: TestClient, world: World, teacher_headers: dict, student_headers: dict
) -> None:
    _enroll(client, teacher_headers, world.student.id, world.school_class.id)

    classes = client.get("/v1/enrollments/my-classes", headers=student_headers).json()
    assert len(classes) == 1
    assert classes[0]["class_name"] == "English A1"
    assert classes[0]["capacity"] == 20

    stats = client.get("/v1/enrollments/my-stats", headers=student_headers).json()
    assert stats["total_classes"] == 1
    assert stats["active_classes"] == 1

    one = client.get(
        f"/v1/enrollments/my-classes/{world.school_class.id}", headers=student_headers
    )
    assert one.status_code == 200


def test_my_enrollment_for_other_class_not_found(
    client: TestClient, world: World, student_headers: dict
) -> None:
    resp = client.get(f"/v1/enrollments/my-classes/{uuid4()}", headers=student_headers)
    assert resp.status_code == 404


def test_student_cannot_read_another_student(
    client: TestClient, world: World, student_headers: dict
) -> None:
    other = add_student(world.store, "Alex")
    resp = client.get(f"/v1/enrollments/students/{other.id}", headers=student_headers)
    assert resp.status_code == 403


def test_student_reads_own_by_id(
    client: TestClient, world: World, student_headers: dict
) -> None:
    resp = client.get(
        f"/v1/enrollments/stats/{world.student.id}", headers=student_headers
    )
    assert resp.status_code == 200
    assert resp.json()["total_classes"] == 0


def test_teacher_lists_class_members(
    client: TestClient, world: World, teacher_headers: dict
) -> None:
    _enroll(client, teacher_headers, world.student.id, world.school_class.id)
    resp = client.get(
        f"/v1/enrollments/classes/{world.school_class.id}", headers=teacher_headers
    )
    assert resp.status_code == 200
    members = resp.json()
    assert [m["student_name"] for m in members] == ["Sam"]
    assert members[0]["student_active"] is True


def test_student_cannot_list_class_members(
    client: TestClient, world: World, student_headers: dict
) -> None:
    resp = client.get(
        f"/v1/enrollments/classes/{world.school_class.id}", headers=student_headers
    )
    assert resp.status_code == 403


def test_non_uuid_subject_rejected_on_self_routes(client: TestClient) -> None:
    resp = client.get("/v1/enrollments/my-classes", headers=auth("not-a-uuid"))
    assert resp.status_code == 401
