"""Content hierarchy: Class -> Lesson -> Activity.

Authored elsewhere; the enrollment engine only reads the fields it needs
to gate access and seed attempts.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

DEFAULT_CAPACITY = 20


@dataclass(frozen=True, slots=True)
class SchoolClass:
    id: UUID
    name: str
    teacher_id: UUID | None = None
    level: str = "beginner"  # beginner|intermediate|advanced
    capacity: int = DEFAULT_CAPACITY
    status: str = "active"  # active|inactive|archived

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @staticmethod
    def new(
        *,
        name: str,
        teacher_id: UUID | None = None,
        level: str = "beginner",
        capacity: int = DEFAULT_CAPACITY,
    ) -> SchoolClass:
        return SchoolClass(
            id=uuid4(),
            name=name,
            teacher_id=teacher_id,
            level=level,
            capacity=capacity,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    class_id: UUID
    title: str
    position: int = 0

    @staticmethod
    def new(*, class_id: UUID, title: str, position: int = 0) -> Lesson:
        return Lesson(id=uuid4(), class_id=class_id, title=title, position=position)


@dataclass(frozen=True, slots=True)
class Activity:
    id: UUID
    lesson_id: UUID
    title: str
    type: str = "quiz"  # quiz|matching|fill_blank|reading|listening|speaking
    points: int = 10
    time_limit_minutes: int | None = None

    @staticmethod
    def new(
        *,
        lesson_id: UUID,
        title: str,
        type: str = "quiz",
        points: int = 10,
        time_limit_minutes: int | None = None,
    ) -> Activity:
        return Activity(
            id=uuid4(),
            lesson_id=lesson_id,
            title=title,
            type=type,
            points=points,
            time_limit_minutes=time_limit_minutes,
        )
