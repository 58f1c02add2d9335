"""Read interface over the content hierarchy (class -> lesson -> activity).

Content authoring lives outside this service.  The in-memory repo has
``add_*`` helpers so dev seeding and tests can build a hierarchy.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from classroom.models.content import Activity, Lesson, SchoolClass


class ContentRepo(Protocol):
    async def get_class(self, class_id: UUID) -> SchoolClass | None: ...
    async def class_exists(self, class_id: UUID) -> bool: ...
    async def class_capacity(self, class_id: UUID) -> int | None: ...
    async def lesson_class_id(self, lesson_id: UUID) -> UUID | None: ...
    async def activity_lesson_id(self, activity_id: UUID) -> UUID | None: ...
    async def activity_points_and_time_limit(
        self, activity_id: UUID
    ) -> tuple[int, int | None] | None: ...
    async def get_activity(self, activity_id: UUID) -> Activity | None: ...
    async def list_lessons(self, class_id: UUID) -> list[Lesson]: ...
    async def list_activities(self, lesson_id: UUID) -> list[Activity]: ...
    async def count_class_activities(self, class_id: UUID) -> int: ...
    async def list_class_activity_ids(self, class_id: UUID) -> list[UUID]: ...


class InMemoryContentRepo:
    def __init__(self) -> None:
        self._classes: dict[UUID, SchoolClass] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._activities: dict[UUID, Activity] = {}

    def add_class(self, school_class: SchoolClass) -> None:
        self._classes[school_class.id] = school_class

    def add_lesson(self, lesson: Lesson) -> None:
        if lesson.class_id not in self._classes:
            raise ValueError("lesson references unknown class")
        self._lessons[lesson.id] = lesson

    def add_activity(self, activity: Activity) -> None:
        if activity.lesson_id not in self._lessons:
            raise ValueError("activity references unknown lesson")
        self._activities[activity.id] = activity

    async def get_class(self, class_id: UUID) -> SchoolClass | None:
        return self._classes.get(class_id)

    async def class_exists(self, class_id: UUID) -> bool:
        return class_id in self._classes

    async def class_capacity(self, class_id: UUID) -> int | None:
        c = self._classes.get(class_id)
        return c.capacity if c is not None else None

    async def lesson_class_id(self, lesson_id: UUID) -> UUID | None:
        lesson = self._lessons.get(lesson_id)
        return lesson.class_id if lesson is not None else None

    async def activity_lesson_id(self, activity_id: UUID) -> UUID | None:
        activity = self._activities.get(activity_id)
        return activity.lesson_id if activity is not None else None

    async def activity_points_and_time_limit(
        self, activity_id: UUID
    ) -> tuple[int, int | None] | None:
        activity = self._activities.get(activity_id)
        if activity is None:
            return None
        return activity.points, activity.time_limit_minutes

    async def get_activity(self, activity_id: UUID) -> Activity | None:
        return self._activities.get(activity_id)

    async def list_lessons(self, class_id: UUID) -> list[Lesson]:
        lessons = [le for le in self._lessons.values() if le.class_id == class_id]
        lessons.sort(key=lambda le: le.position)
        return lessons

    async def list_activities(self, lesson_id: UUID) -> list[Activity]:
        return [a for a in self._activities.values() if a.lesson_id == lesson_id]

    async def count_class_activities(self, class_id: UUID) -> int:
        return len(await self.list_class_activity_ids(class_id))

    async def list_class_activity_ids(self, class_id: UUID) -> list[UUID]:
        lesson_ids = {le.id for le in self._lessons.values() if le.class_id == class_id}
        return [a.id for a in self._activities.values() if a.lesson_id in lesson_ids]
