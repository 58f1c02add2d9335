from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Any, Protocol
from uuid import UUID

from classroom.models.attempt import (
    ATTEMPT_COMPLETED,
    ATTEMPT_IN_PROGRESS,
    Attempt,
    Submission,
)


class AttemptRepo(Protocol):
    async def get(self, student_id: UUID, activity_id: UUID) -> Attempt | None: ...
    async def insert_if_absent(self, attempt: Attempt) -> bool: ...
    async def resume(
        self, student_id: UUID, activity_id: UUID, now: int
    ) -> Attempt | None: ...
    async def complete(
        self, student_id: UUID, activity_id: UUID, submission: Submission, now: int
    ) -> Attempt | None: ...
    async def set_status(
        self, student_id: UUID, activity_id: UUID, status: str, now: int
    ) -> Attempt | None: ...
    async def patch(
        self, student_id: UUID, activity_id: UUID, fields: dict[str, Any], now: int
    ) -> Attempt | None: ...
    async def list_by_student(self, student_id: UUID) -> list[Attempt]: ...
    async def list_by_activities(self, activity_ids: Iterable[UUID]) -> list[Attempt]: ...


class InMemoryAttemptRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Attempt] = {}

    async def get(self, student_id: UUID, activity_id: UUID) -> Attempt | None:
        return self._store.get((student_id, activity_id))

    async def insert_if_absent(self, attempt: Attempt) -> bool:
        key = (attempt.student_id, attempt.activity_id)
        if key in self._store:
            return False
        self._store[key] = attempt
        return True

    async def resume(
        self, student_id: UUID, activity_id: UUID, now: int
    ) -> Attempt | None:
        # Conditional on "not completed", mirroring the SQL WHERE clause.
        current = self._store.get((student_id, activity_id))
        if current is None or current.status == ATTEMPT_COMPLETED:
            return None
        updated = replace(
            current, status=ATTEMPT_IN_PROGRESS, started_at=now, updated_at=now
        )
        self._store[(student_id, activity_id)] = updated
        return updated

    async def complete(
        self, student_id: UUID, activity_id: UUID, submission: Submission, now: int
    ) -> Attempt | None:
        current = self._store.get((student_id, activity_id))
        if current is None or current.status == ATTEMPT_COMPLETED:
            return None
        updated = replace(
            current,
            status=ATTEMPT_COMPLETED,
            score=submission.score,
            max_score=submission.max_score,
            percentage=submission.percentage,
            time_spent=submission.time_spent,
            answers=submission.answers,
            completed_at=now,
            updated_at=now,
        )
        self._store[(student_id, activity_id)] = updated
        return updated

    async def set_status(
        self, student_id: UUID, activity_id: UUID, status: str, now: int
    ) -> Attempt | None:
        current = self._store.get((student_id, activity_id))
        if current is None:
            return None
        updated = replace(current, status=status, updated_at=now)
        self._store[(student_id, activity_id)] = updated
        return updated

    async def patch(
        self, student_id: UUID, activity_id: UUID, fields: dict[str, Any], now: int
    ) -> Attempt | None:
        current = self._store.get((student_id, activity_id))
        if current is None:
            return None
        updated = replace(current, **fields, updated_at=now)
        self._store[(student_id, activity_id)] = updated
        return updated

    async def list_by_student(self, student_id: UUID) -> list[Attempt]:
        rows = [a for a in self._store.values() if a.student_id == student_id]
        rows.sort(key=lambda a: a.created_at, reverse=True)
        return rows

    async def list_by_activities(self, activity_ids: Iterable[UUID]) -> list[Attempt]:
        wanted = set(activity_ids)
        rows = [a for a in self._store.values() if a.activity_id in wanted]
        rows.sort(key=lambda a: a.created_at, reverse=True)
        return rows

    def snapshot(self) -> dict[tuple[UUID, UUID], Attempt]:
        return dict(self._store)

    def restore(self, state: dict[tuple[UUID, UUID], Attempt]) -> None:
        self._store = dict(state)
