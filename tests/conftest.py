from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

# Ensure repo root is on sys.path so `import classroom` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from classroom.main import app  # noqa: E402
from classroom.models.content import Activity, Lesson, SchoolClass  # noqa: E402
from classroom.models.user import ROLE_ADMIN, ROLE_TEACHER, User  # noqa: E402
from classroom.repos.store import InMemoryStore  # noqa: E402
from classroom.services import token_service  # noqa: E402
from classroom.services.container import Services, build_in_memory_services  # noqa: E402


class FakeClock:
    """Deterministic epoch-seconds clock; call ``advance`` to move time."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


class BrokenCache:
    """A cache whose backend is down: every call raises."""

    async def get(self, key):
        raise ConnectionError("cache down")

    async def set(self, key, value, ttl_seconds):
        raise ConnectionError("cache down")

    async def delete(self, key):
        raise ConnectionError("cache down")

    async def delete_pattern(self, pattern):
        raise ConnectionError("cache down")

    async def incr(self, key):
        raise ConnectionError("cache down")


@dataclass
class World:
    """One teacher, one student, one class with a lesson and an activity."""

    store: InMemoryStore
    teacher: User
    student: User
    school_class: SchoolClass
    lesson: Lesson
    activity: Activity


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def services(store: InMemoryStore, clock: FakeClock) -> Services:
    """Fresh in-memory container per test, installed on the app."""
    svc = build_in_memory_services(store=store, clock=clock)
    app.state.services = svc
    return svc


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(sub: str = "test-user", roles: list[str] | None = None) -> str:
    """Create a valid HS256 JWT for testing."""
    return token_service.create_access_token(sub=sub, roles=roles)


def auth(user: User | str, roles: list[str] | None = None) -> dict[str, str]:
    sub = user if isinstance(user, str) else str(user.id)
    return {"Authorization": f"Bearer {mint_token(sub, roles)}"}


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


def add_student(store: InMemoryStore, name: str = "Sam") -> User:
    user = User.new(name=name)
    store.users.add(user)
    return user


def add_teacher(store: InMemoryStore, name: str = "Ms. Rivera") -> User:
    user = User.new(name=name, role=ROLE_TEACHER)
    store.users.add(user)
    return user


def add_class(
    store: InMemoryStore,
    *,
    name: str = "English A1",
    teacher: User | None = None,
    capacity: int = 20,
) -> SchoolClass:
    school_class = SchoolClass.new(
        name=name,
        teacher_id=teacher.id if teacher else None,
        capacity=capacity,
    )
    store.content.add_class(school_class)
    return school_class


def add_lesson(
    store: InMemoryStore, school_class: SchoolClass, *, title: str = "Greetings", position: int = 0
) -> Lesson:
    lesson = Lesson.new(class_id=school_class.id, title=title, position=position)
    store.content.add_lesson(lesson)
    return lesson


def add_activity(
    store: InMemoryStore,
    lesson: Lesson,
    *,
    title: str = "Hello quiz",
    points: int = 10,
    time_limit_minutes: int | None = None,
) -> Activity:
    activity = Activity.new(
        lesson_id=lesson.id,
        title=title,
        points=points,
        time_limit_minutes=time_limit_minutes,
    )
    store.content.add_activity(activity)
    return activity


@pytest.fixture
def world(store: InMemoryStore) -> World:
    teacher = add_teacher(store)
    student = add_student(store)
    school_class = add_class(store, teacher=teacher)
    lesson = add_lesson(store, school_class)
    activity = add_activity(store, lesson, time_limit_minutes=5)
    return World(
        store=store,
        teacher=teacher,
        student=student,
        school_class=school_class,
        lesson=lesson,
        activity=activity,
    )


@pytest.fixture
def teacher_headers(world: World) -> dict[str, str]:
    return auth(world.teacher, [ROLE_TEACHER])


@pytest.fixture
def student_headers(world: World) -> dict[str, str]:
    return auth(world.student)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth("00000000-0000-0000-0000-00000000a11a", [ROLE_ADMIN])
