"""PostgreSQL implementation of EnrollmentRepo.

Both writes that can race are single statements keyed on the
(student_id, class_id) unique constraint:

  upsert_active  INSERT ... ON CONFLICT DO UPDATE SET status='active', ...
                 Stats columns are not in the SET list, so a resurrect
                 never touches them.

  add_stats      INSERT ... ON CONFLICT DO UPDATE SET
                   total_points = student_enrollments.total_points + EXCLUDED.total_points
                 The addition happens inside Postgres under the row lock,
                 so two concurrent submissions can't lose an update.
"""

from __future__ import annotations

import uuid
from typing import Any
from uuid import UUID

from sqlalchemy import Numeric, case, cast, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.db.tables import StudentEnrollmentRow
from classroom.models.enrollment import (
    STATUS_ACTIVE,
    EnrollmentRecord,
    average_score,
)

_T = StudentEnrollmentRow
_KEY_CONSTRAINT = "uq_student_enrollments_student_class"


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: UUID, class_id: UUID) -> EnrollmentRecord | None:
        stmt = (
            select(_T)
            .where(_T.student_id == student_id, _T.class_id == class_id)
            .order_by(_T.updated_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def list_by_student(self, student_id: UUID) -> list[EnrollmentRecord]:
        # DISTINCT ON keeps the freshest row per class if legacy duplicates exist.
        stmt = (
            select(_T)
            .where(_T.student_id == student_id)
            .distinct(_T.class_id)
            .order_by(_T.class_id, _T.updated_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def list_by_class(self, class_id: UUID) -> list[EnrollmentRecord]:
        stmt = (
            select(_T)
            .where(_T.class_id == class_id)
            .distinct(_T.student_id)
            .order_by(_T.student_id, _T.updated_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def upsert_active(
        self, student_id: UUID, class_id: UUID, now: int
    ) -> EnrollmentRecord:
        stmt = insert(_T).values(
            id=uuid.uuid4(),
            student_id=student_id,
            class_id=class_id,
            status=STATUS_ACTIVE,
            enrolled_at=now,
            total_points=0,
            completed_activities=0,
            average_score=0,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint=_KEY_CONSTRAINT,
            set_={
                "status": STATUS_ACTIVE,
                "enrolled_at": stmt.excluded.enrolled_at,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(_T)
        row = (
            await self._session.scalars(
                stmt, execution_options={"populate_existing": True}
            )
        ).one()
        return _row_to_record(row)

    async def set_status(
        self, student_id: UUID, class_id: UUID, status: str, now: int
    ) -> EnrollmentRecord | None:
        stmt = (
            update(_T)
            .where(_T.student_id == student_id, _T.class_id == class_id)
            .values(status=status, updated_at=now)
        )
        await self._session.execute(stmt)
        return await self.get(student_id, class_id)

    async def add_stats(
        self,
        student_id: UUID,
        class_id: UUID,
        points_delta: int,
        completed_delta: int,
        now: int,
    ) -> EnrollmentRecord:
        stmt = insert(_T).values(
            id=uuid.uuid4(),
            student_id=student_id,
            class_id=class_id,
            status=STATUS_ACTIVE,
            enrolled_at=now,
            total_points=points_delta,
            completed_activities=completed_delta,
            average_score=average_score(points_delta, completed_delta),
            created_at=now,
            updated_at=now,
        )
        new_total = _T.total_points + stmt.excluded.total_points
        new_completed = _T.completed_activities + stmt.excluded.completed_activities
        stmt = stmt.on_conflict_do_update(
            constraint=_KEY_CONSTRAINT,
            set_={
                "total_points": new_total,
                "completed_activities": new_completed,
                "average_score": case(
                    (
                        new_completed > 0,
                        func.round(cast(new_total, Numeric) / new_completed, 2),
                    ),
                    else_=0,
                ),
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(_T)
        row = (
            await self._session.scalars(
                stmt, execution_options={"populate_existing": True}
            )
        ).one()
        return _row_to_record(row)

    async def patch(
        self, student_id: UUID, class_id: UUID, fields: dict[str, Any], now: int
    ) -> EnrollmentRecord | None:
        stmt = (
            update(_T)
            .where(_T.student_id == student_id, _T.class_id == class_id)
            .values(**fields, updated_at=now)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(student_id, class_id)


def _row_to_record(row: StudentEnrollmentRow) -> EnrollmentRecord:
    return EnrollmentRecord(
        id=row.id,
        student_id=row.student_id,
        class_id=row.class_id,
        status=row.status,
        enrolled_at=row.enrolled_at,
        completed_at=row.completed_at,
        total_points=row.total_points,
        completed_activities=row.completed_activities,
        average_score=float(row.average_score),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
