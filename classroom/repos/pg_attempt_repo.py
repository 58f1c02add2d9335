"""PostgreSQL implementation of AttemptRepo."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.db.tables import ActivityResultRow
from classroom.models.attempt import (
    ATTEMPT_COMPLETED,
    ATTEMPT_IN_PROGRESS,
    Attempt,
    Submission,
)

_T = ActivityResultRow


class PgAttemptRepo:
    """Satisfies the AttemptRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _key(self, student_id: UUID, activity_id: UUID):
        return (_T.student_id == student_id, _T.activity_id == activity_id)

    async def _update_returning(self, stmt) -> Attempt | None:
        stmt = stmt.returning(_T).execution_options(
            populate_existing=True, synchronize_session=False
        )
        row = (await self._session.scalars(stmt)).one_or_none()
        return _row_to_attempt(row) if row is not None else None

    async def get(self, student_id: UUID, activity_id: UUID) -> Attempt | None:
        stmt = select(_T).where(*self._key(student_id, activity_id))
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_attempt(row)

    async def insert_if_absent(self, attempt: Attempt) -> bool:
        stmt = (
            insert(_T)
            .values(
                id=attempt.id,
                student_id=attempt.student_id,
                activity_id=attempt.activity_id,
                status=attempt.status,
                time_limit=attempt.time_limit,
                started_at=attempt.started_at,
                created_at=attempt.created_at,
                updated_at=attempt.updated_at,
            )
            .on_conflict_do_nothing(
                constraint="uq_activity_results_student_activity"
            )
            .returning(_T.id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        return inserted is not None

    async def resume(
        self, student_id: UUID, activity_id: UUID, now: int
    ) -> Attempt | None:
        stmt = (
            update(_T)
            .where(*self._key(student_id, activity_id))
            .where(_T.status != ATTEMPT_COMPLETED)
            .values(status=ATTEMPT_IN_PROGRESS, started_at=now, updated_at=now)
        )
        return await self._update_returning(stmt)

    async def complete(
        self, student_id: UUID, activity_id: UUID, submission: Submission, now: int
    ) -> Attempt | None:
        # Test-and-set in one statement: of two concurrent submits only one
        # sees a non-completed row.
        stmt = (
            update(_T)
            .where(*self._key(student_id, activity_id))
            .where(_T.status != ATTEMPT_COMPLETED)
            .values(
                status=ATTEMPT_COMPLETED,
                score=submission.score,
                max_score=submission.max_score,
                percentage=submission.percentage,
                time_spent=submission.time_spent,
                answers=submission.answers,
                completed_at=now,
                updated_at=now,
            )
        )
        return await self._update_returning(stmt)

    async def set_status(
        self, student_id: UUID, activity_id: UUID, status: str, now: int
    ) -> Attempt | None:
        stmt = (
            update(_T)
            .where(*self._key(student_id, activity_id))
            .values(status=status, updated_at=now)
        )
        return await self._update_returning(stmt)

    async def patch(
        self, student_id: UUID, activity_id: UUID, fields: dict[str, Any], now: int
    ) -> Attempt | None:
        stmt = (
            update(_T)
            .where(*self._key(student_id, activity_id))
            .values(**fields, updated_at=now)
        )
        return await self._update_returning(stmt)

    async def list_by_student(self, student_id: UUID) -> list[Attempt]:
        stmt = (
            select(_T)
            .where(_T.student_id == student_id)
            .order_by(_T.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def list_by_activities(self, activity_ids: Iterable[UUID]) -> list[Attempt]:
        ids = list(activity_ids)
        if not ids:
            return []
        stmt = (
            select(_T)
            .where(_T.activity_id.in_(ids))
            .order_by(_T.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]


def _row_to_attempt(row: ActivityResultRow) -> Attempt:
    return Attempt(
        id=row.id,
        student_id=row.student_id,
        activity_id=row.activity_id,
        status=row.status,
        score=row.score,
        max_score=row.max_score,
        percentage=row.percentage,
        time_spent=row.time_spent,
        time_limit=row.time_limit,
        answers=row.answers,
        feedback=row.feedback,
        started_at=row.started_at,
        completed_at=row.completed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
