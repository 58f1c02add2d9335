"""Access control derived from class membership.

A student may see a class iff a membership row exists; lessons and
activities inherit that answer through the content hierarchy
(activity -> lesson -> class).  Enrollment-record status is never
consulted, so a removed student loses access the moment the membership
row is gone, whatever the record says.

The ``can_access_*`` checks fail closed: an unknown lesson or activity
is "not accessible", never an exception.  They accept an optional open
transaction so the attempt manager can check access and mutate in the
same unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from classroom.core.errors import ForbiddenError, NotFoundError
from classroom.models.content import Activity, Lesson
from classroom.repos.store import Store, StoreTx

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LessonView:
    lesson: Lesson
    activity_count: int


@dataclass(frozen=True, slots=True)
class ActivityView:
    activity: Activity
    lesson_id: UUID
    class_id: UUID


class AccessControlResolver:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def can_access_class(
        self, student_id: UUID, class_id: UUID, *, tx: StoreTx | None = None
    ) -> bool:
        if tx is None:
            async with self._store.transaction() as own_tx:
                return await _member(own_tx, student_id, class_id)
        return await _member(tx, student_id, class_id)

    async def can_access_lesson(
        self, student_id: UUID, lesson_id: UUID, *, tx: StoreTx | None = None
    ) -> bool:
        if tx is None:
            async with self._store.transaction() as own_tx:
                return await self.can_access_lesson(student_id, lesson_id, tx=own_tx)
        class_id = await tx.content.lesson_class_id(lesson_id)
        if class_id is None:
            return False
        return await _member(tx, student_id, class_id)

    async def can_access_activity(
        self, student_id: UUID, activity_id: UUID, *, tx: StoreTx | None = None
    ) -> bool:
        if tx is None:
            async with self._store.transaction() as own_tx:
                return await self.can_access_activity(
                    student_id, activity_id, tx=own_tx
                )
        class_id = await resolve_activity_class(tx, activity_id)
        if class_id is None:
            return False
        return await _member(tx, student_id, class_id)

    # ------------------------------------------------------------------
    # Access-gated content reads
    # ------------------------------------------------------------------

    async def lessons_for_student(
        self, student_id: UUID, class_id: UUID
    ) -> list[LessonView]:
        async with self._store.transaction() as tx:
            if not await _member(tx, student_id, class_id):
                _deny(student_id, class_id=class_id)
            lessons = await tx.content.list_lessons(class_id)
            return [
                LessonView(
                    lesson=le,
                    activity_count=len(await tx.content.list_activities(le.id)),
                )
                for le in lessons
            ]

    async def activities_for_student(
        self, student_id: UUID, lesson_id: UUID
    ) -> list[Activity]:
        async with self._store.transaction() as tx:
            if not await self.can_access_lesson(student_id, lesson_id, tx=tx):
                _deny(student_id, lesson_id=lesson_id)
            return await tx.content.list_activities(lesson_id)

    async def activity_for_student(
        self, student_id: UUID, activity_id: UUID
    ) -> ActivityView:
        async with self._store.transaction() as tx:
            activity = await tx.content.get_activity(activity_id)
            if activity is None:
                raise NotFoundError("activity not found")
            class_id = await tx.content.lesson_class_id(activity.lesson_id)
            if class_id is None or not await _member(tx, student_id, class_id):
                _deny(student_id, activity_id=activity_id)
            return ActivityView(
                activity=activity, lesson_id=activity.lesson_id, class_id=class_id
            )


async def resolve_activity_class(tx: StoreTx, activity_id: UUID) -> UUID | None:
    """activity -> lesson -> class, or None if any link is missing."""
    lesson_id = await tx.content.activity_lesson_id(activity_id)
    if lesson_id is None:
        return None
    return await tx.content.lesson_class_id(lesson_id)


async def _member(tx: StoreTx, student_id: UUID, class_id: UUID) -> bool:
    return await tx.memberships.get(student_id, class_id) is not None


def _deny(student_id: UUID, **target: UUID) -> None:
    logger.warning(
        "Content access denied",
        extra={"student_id": str(student_id), **{k: str(v) for k, v in target.items()}},
    )
    raise ForbiddenError("not a member of this class")
