"""PostgreSQL implementation of ContentRepo (read-only)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.db.tables import ActivityRow, ClassRow, LessonRow
from classroom.models.content import Activity, Lesson, SchoolClass


class PgContentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_class(self, class_id: UUID) -> SchoolClass | None:
        row = await self._session.get(ClassRow, class_id)
        if row is None:
            return None
        return _row_to_class(row)

    async def class_exists(self, class_id: UUID) -> bool:
        stmt = select(ClassRow.id).where(ClassRow.id == class_id)
        return (await self._session.execute(stmt)).scalar_one_or_none() is not None

    async def class_capacity(self, class_id: UUID) -> int | None:
        stmt = select(ClassRow.capacity).where(ClassRow.id == class_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def lesson_class_id(self, lesson_id: UUID) -> UUID | None:
        stmt = select(LessonRow.class_id).where(LessonRow.id == lesson_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def activity_lesson_id(self, activity_id: UUID) -> UUID | None:
        stmt = select(ActivityRow.lesson_id).where(ActivityRow.id == activity_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def activity_points_and_time_limit(
        self, activity_id: UUID
    ) -> tuple[int, int | None] | None:
        stmt = select(ActivityRow.points, ActivityRow.time_limit_minutes).where(
            ActivityRow.id == activity_id
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return row.points, row.time_limit_minutes

    async def get_activity(self, activity_id: UUID) -> Activity | None:
        row = await self._session.get(ActivityRow, activity_id)
        if row is None:
            return None
        return _row_to_activity(row)

    async def list_lessons(self, class_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.class_id == class_id)
            .order_by(LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Lesson(id=r.id, class_id=r.class_id, title=r.title, position=r.position)
            for r in rows
        ]

    async def list_activities(self, lesson_id: UUID) -> list[Activity]:
        stmt = select(ActivityRow).where(ActivityRow.lesson_id == lesson_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_activity(r) for r in rows]

    async def count_class_activities(self, class_id: UUID) -> int:
        stmt = (
            select(func.count(ActivityRow.id))
            .join(LessonRow, ActivityRow.lesson_id == LessonRow.id)
            .where(LessonRow.class_id == class_id)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_class_activity_ids(self, class_id: UUID) -> list[UUID]:
        stmt = (
            select(ActivityRow.id)
            .join(LessonRow, ActivityRow.lesson_id == LessonRow.id)
            .where(LessonRow.class_id == class_id)
        )
        return list((await self._session.execute(stmt)).scalars().all())


def _row_to_class(row: ClassRow) -> SchoolClass:
    return SchoolClass(
        id=row.id,
        name=row.name,
        teacher_id=row.teacher_id,
        level=row.level,
        capacity=row.capacity,
        status=row.status,
    )


def _row_to_activity(row: ActivityRow) -> Activity:
    return Activity(
        id=row.id,
        lesson_id=row.lesson_id,
        title=row.title,
        type=row.type,
        points=row.points,
        time_limit_minutes=row.time_limit_minutes,
    )
