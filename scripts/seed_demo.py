"""Demo: walk the enrollment -> attempt -> progress flow with TestClient.

Seeds an in-memory container (one teacher, one student, one class with a
lesson and an activity), installs it on the app and drives the HTTP API
the way a teacher and a student would.

Run with:
    python scripts/seed_demo.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from classroom.main import app
from classroom.models.content import Activity, Lesson, SchoolClass
from classroom.models.user import ROLE_TEACHER, User
from classroom.repos.store import InMemoryStore
from classroom.services.container import build_in_memory_services
from classroom.services.token_service import create_access_token


def main() -> None:
    # ── Seed data ───────────────────────────────────────────────────
    store = InMemoryStore()
    teacher = User.new(name="Ms. Rivera", role=ROLE_TEACHER)
    student = User.new(name="Sam")
    store.users.add(teacher)
    store.users.add(student)

    school_class = SchoolClass.new(name="English A1", teacher_id=teacher.id)
    lesson = Lesson.new(class_id=school_class.id, title="Greetings")
    activity = Activity.new(
        lesson_id=lesson.id, title="Hello quiz", points=100, time_limit_minutes=5
    )
    store.content.add_class(school_class)
    store.content.add_lesson(lesson)
    store.content.add_activity(activity)

    app.state.services = build_in_memory_services(store=store)
    client = TestClient(app)

    teacher_h = {
        "Authorization": "Bearer "
        + create_access_token(sub=str(teacher.id), roles=[ROLE_TEACHER])
    }
    student_h = {
        "Authorization": "Bearer " + create_access_token(sub=str(student.id))
    }

    # ── Step 1: student tries an activity before enrollment ────────
    r = client.post(
        "/v1/attempts/start", json={"activity_id": str(activity.id)}, headers=student_h
    )
    print(f"1. POST /v1/attempts/start (not enrolled) -> {r.status_code}  {r.json()}")

    # ── Step 2: teacher enrolls the student ─────────────────────────
    r = client.post(
        "/v1/enrollments",
        json={"student_id": str(student.id), "class_id": str(school_class.id)},
        headers=teacher_h,
    )
    print(f"2. POST /v1/enrollments                   -> {r.status_code}")

    # ── Step 3: start + submit ──────────────────────────────────────
    r = client.post(
        "/v1/attempts/start", json={"activity_id": str(activity.id)}, headers=student_h
    )
    print(f"3. POST /v1/attempts/start                -> {r.status_code}  "
          f"time_limit={r.json()['time_limit']}")
    r = client.post(
        "/v1/attempts/submit",
        json={
            "activity_id": str(activity.id),
            "time_spent": 120,
            "score": 90,
            "max_score": 100,
            "percentage": 90,
        },
        headers=student_h,
    )
    print(f"4. POST /v1/attempts/submit               -> {r.status_code}")

    # ── Step 4: resubmit is rejected ────────────────────────────────
    r = client.post(
        "/v1/attempts/submit",
        json={"activity_id": str(activity.id), "time_spent": 1, "score": 90},
        headers=student_h,
    )
    print(f"5. POST /v1/attempts/submit (again)       -> {r.status_code}  {r.json()}")

    # ── Step 5: progress ────────────────────────────────────────────
    r = client.get("/v1/progress/me", headers=student_h)
    print(f"6. GET  /v1/progress/me                   -> {r.status_code}  {r.json()}")
    r = client.get(f"/v1/progress/classes/{school_class.id}", headers=teacher_h)
    print(f"7. GET  /v1/progress/classes/<id>         -> {r.status_code}  "
          f"members={len(r.json()['members'])}")


if __name__ == "__main__":
    main()
