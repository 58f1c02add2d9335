"""Transactional boundary over the enrollment-engine repositories.

Every write that spans memberships, enrollment records and attempts runs
inside ``Store.transaction()``.  The block either commits as a whole or
leaves no trace: a membership insert and its enrollment upsert can never
be half-applied.

Two implementations satisfy the Protocol:

  InMemoryStore  (dev without DATABASE_URL, tests)
    One asyncio.Lock serializes transactions.  On entry the mutable repos
    are snapshotted; if the block raises, the snapshot is restored.

  PgStore  (classroom/repos/pg_store.py)
    One AsyncSession per transaction.  Row locks and ON CONFLICT upserts
    give the same guarantees without a process-wide lock.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol
from uuid import UUID

from classroom.repos.attempt_repo import AttemptRepo, InMemoryAttemptRepo
from classroom.repos.content_repo import ContentRepo, InMemoryContentRepo
from classroom.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from classroom.repos.membership_repo import InMemoryMembershipRepo, MembershipRepo
from classroom.repos.user_repo import InMemoryUserRepo, UserRepo


class StoreTx(Protocol):
    memberships: MembershipRepo
    enrollments: EnrollmentRepo
    attempts: AttemptRepo
    content: ContentRepo
    users: UserRepo

    async def lock_class(self, class_id: UUID) -> None:
        """Serialize capacity checks for one class until the tx ends."""
        ...

    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Nested unit: a failure inside rolls back only the nested part."""
        ...


class Store(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[StoreTx]: ...


class InMemoryTx:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self.memberships = store.memberships
        self.enrollments = store.enrollments
        self.attempts = store.attempts
        self.content = store.content
        self.users = store.users

    async def lock_class(self, class_id: UUID) -> None:
        # The store-wide lock is already held.
        return None

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        state = self._store.snapshot()
        try:
            yield
        except BaseException:
            self._store.restore(state)
            raise


class InMemoryStore:
    def __init__(
        self,
        *,
        content: InMemoryContentRepo | None = None,
        users: InMemoryUserRepo | None = None,
    ) -> None:
        self.memberships = InMemoryMembershipRepo()
        self.enrollments = InMemoryEnrollmentRepo()
        self.attempts = InMemoryAttemptRepo()
        self.content = content if content is not None else InMemoryContentRepo()
        self.users = users if users is not None else InMemoryUserRepo()
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _loop_lock(self) -> asyncio.Lock:
        # asyncio.Lock binds to the loop it is first contended on; TestClient
        # and asyncio.run() each bring their own loop.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def snapshot(self) -> tuple:
        return (
            self.memberships.snapshot(),
            self.enrollments.snapshot(),
            self.attempts.snapshot(),
        )

    def restore(self, state: tuple) -> None:
        memberships, enrollments, attempts = state
        self.memberships.restore(memberships)
        self.enrollments.restore(enrollments)
        self.attempts.restore(attempts)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTx]:
        async with self._loop_lock():
            state = self.snapshot()
            try:
                yield InMemoryTx(self)
            except BaseException:
                self.restore(state)
                raise
