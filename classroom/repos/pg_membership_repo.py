"""PostgreSQL implementation of MembershipRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.db.tables import ClassStudentRow
from classroom.models.enrollment import Membership


class PgMembershipRepo:
    """Satisfies the MembershipRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: UUID, class_id: UUID) -> Membership | None:
        stmt = select(ClassStudentRow).where(
            ClassStudentRow.student_id == student_id,
            ClassStudentRow.class_id == class_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_membership(row)

    async def insert_if_absent(self, membership: Membership) -> bool:
        stmt = (
            insert(ClassStudentRow)
            .values(
                student_id=membership.student_id,
                class_id=membership.class_id,
                created_at=membership.created_at,
            )
            .on_conflict_do_nothing(index_elements=["student_id", "class_id"])
            .returning(ClassStudentRow.student_id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        return inserted is not None

    async def delete(self, student_id: UUID, class_id: UUID) -> bool:
        stmt = (
            delete(ClassStudentRow)
            .where(
                ClassStudentRow.student_id == student_id,
                ClassStudentRow.class_id == class_id,
            )
            .returning(ClassStudentRow.student_id)
        )
        deleted = (await self._session.execute(stmt)).scalar_one_or_none()
        return deleted is not None

    async def count_by_class(self, class_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(ClassStudentRow)
            .where(ClassStudentRow.class_id == class_id)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_by_student(self, student_id: UUID) -> list[Membership]:
        stmt = (
            select(ClassStudentRow)
            .where(ClassStudentRow.student_id == student_id)
            .order_by(ClassStudentRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_membership(r) for r in rows]

    async def list_by_class(self, class_id: UUID) -> list[Membership]:
        stmt = (
            select(ClassStudentRow)
            .where(ClassStudentRow.class_id == class_id)
            .order_by(ClassStudentRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_membership(r) for r in rows]


def _row_to_membership(row: ClassStudentRow) -> Membership:
    return Membership(
        student_id=row.student_id,
        class_id=row.class_id,
        created_at=row.created_at,
    )
