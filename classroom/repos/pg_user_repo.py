"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.db.tables import UserRow
from classroom.models.user import ROLE_STUDENT, User


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        stmt = select(UserRow).where(UserRow.id == user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def is_active_student(self, user_id: UUID) -> bool:
        stmt = select(UserRow.id).where(
            UserRow.id == user_id,
            UserRow.role == ROLE_STUDENT,
            UserRow.is_active.is_(True),
        )
        return (await self._session.execute(stmt)).scalar_one_or_none() is not None


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        name=row.name or "",
        role=row.role,
        is_active=row.is_active,
    )
