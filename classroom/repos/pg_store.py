"""PostgreSQL implementation of Store.

One AsyncSession per transaction; ``session.begin()`` commits when the
block exits normally and rolls back when it raises.  All repos in a
PgTx share that session, so a membership insert and its enrollment
upsert land in the same database transaction.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classroom.db.tables import ClassRow
from classroom.repos.pg_attempt_repo import PgAttemptRepo
from classroom.repos.pg_content_repo import PgContentRepo
from classroom.repos.pg_enrollment_repo import PgEnrollmentRepo
from classroom.repos.pg_membership_repo import PgMembershipRepo
from classroom.repos.pg_user_repo import PgUserRepo
from classroom.repos.store import StoreTx


class PgTx:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.memberships = PgMembershipRepo(session)
        self.enrollments = PgEnrollmentRepo(session)
        self.attempts = PgAttemptRepo(session)
        self.content = PgContentRepo(session)
        self.users = PgUserRepo(session)

    async def lock_class(self, class_id: UUID) -> None:
        # Row lock on the class: concurrent adds to the same class queue
        # here, so count-then-insert can't overfill it.
        stmt = select(ClassRow.id).where(ClassRow.id == class_id).with_for_update()
        await self._session.execute(stmt)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield


class PgStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTx]:
        async with self._session_factory() as session:
            async with session.begin():
                yield PgTx(session)
