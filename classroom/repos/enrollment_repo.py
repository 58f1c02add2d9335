from __future__ import annotations

from dataclasses import replace
from typing import Any, Protocol
from uuid import UUID

from classroom.models.enrollment import (
    STATUS_ACTIVE,
    EnrollmentRecord,
    average_score,
)


class EnrollmentRepo(Protocol):
    async def get(self, student_id: UUID, class_id: UUID) -> EnrollmentRecord | None: ...
    async def list_by_student(self, student_id: UUID) -> list[EnrollmentRecord]: ...
    async def list_by_class(self, class_id: UUID) -> list[EnrollmentRecord]: ...
    async def upsert_active(
        self, student_id: UUID, class_id: UUID, now: int
    ) -> EnrollmentRecord: ...
    async def set_status(
        self, student_id: UUID, class_id: UUID, status: str, now: int
    ) -> EnrollmentRecord | None: ...
    async def add_stats(
        self,
        student_id: UUID,
        class_id: UUID,
        points_delta: int,
        completed_delta: int,
        now: int,
    ) -> EnrollmentRecord: ...
    async def patch(
        self, student_id: UUID, class_id: UUID, fields: dict[str, Any], now: int
    ) -> EnrollmentRecord | None: ...


class InMemoryEnrollmentRepo:
    """Rows keyed by synthetic id, so legacy duplicates for one
    (student_id, class_id) can coexist.  Reads and stat writes use the
    most recently updated row; status and admin patches hit all of them.
    """

    def __init__(self) -> None:
        self._rows: dict[UUID, EnrollmentRecord] = {}

    def _for_key(self, student_id: UUID, class_id: UUID) -> list[EnrollmentRecord]:
        rows = [
            r
            for r in self._rows.values()
            if r.student_id == student_id and r.class_id == class_id
        ]
        rows.sort(key=lambda r: r.updated_at, reverse=True)
        return rows

    async def get(self, student_id: UUID, class_id: UUID) -> EnrollmentRecord | None:
        rows = self._for_key(student_id, class_id)
        return rows[0] if rows else None

    async def list_by_student(self, student_id: UUID) -> list[EnrollmentRecord]:
        latest: dict[UUID, EnrollmentRecord] = {}
        for r in self._rows.values():
            if r.student_id != student_id:
                continue
            current = latest.get(r.class_id)
            if current is None or r.updated_at > current.updated_at:
                latest[r.class_id] = r
        return list(latest.values())

    async def list_by_class(self, class_id: UUID) -> list[EnrollmentRecord]:
        latest: dict[UUID, EnrollmentRecord] = {}
        for r in self._rows.values():
            if r.class_id != class_id:
                continue
            current = latest.get(r.student_id)
            if current is None or r.updated_at > current.updated_at:
                latest[r.student_id] = r
        return list(latest.values())

    async def upsert_active(
        self, student_id: UUID, class_id: UUID, now: int
    ) -> EnrollmentRecord:
        existing = await self.get(student_id, class_id)
        if existing is None:
            record = EnrollmentRecord.new(student_id=student_id, class_id=class_id, now=now)
        else:
            # Resurrect: only status and timestamps move, stats are kept.
            record = replace(
                existing, status=STATUS_ACTIVE, enrolled_at=now, updated_at=now
            )
        self._rows[record.id] = record
        return record

    async def set_status(
        self, student_id: UUID, class_id: UUID, status: str, now: int
    ) -> EnrollmentRecord | None:
        rows = self._for_key(student_id, class_id)
        for r in rows:
            self._rows[r.id] = replace(r, status=status, updated_at=now)
        return await self.get(student_id, class_id)

    async def add_stats(
        self,
        student_id: UUID,
        class_id: UUID,
        points_delta: int,
        completed_delta: int,
        now: int,
    ) -> EnrollmentRecord:
        base = await self.get(student_id, class_id)
        if base is None:
            base = EnrollmentRecord.new(student_id=student_id, class_id=class_id, now=now)
        total_points = base.total_points + points_delta
        completed = base.completed_activities + completed_delta
        record = replace(
            base,
            total_points=total_points,
            completed_activities=completed,
            average_score=average_score(total_points, completed),
            updated_at=now,
        )
        self._rows[record.id] = record
        return record

    async def patch(
        self, student_id: UUID, class_id: UUID, fields: dict[str, Any], now: int
    ) -> EnrollmentRecord | None:
        rows = self._for_key(student_id, class_id)
        if not rows:
            return None
        for r in rows:
            self._rows[r.id] = replace(r, **fields, updated_at=now)
        return await self.get(student_id, class_id)

    def snapshot(self) -> dict[UUID, EnrollmentRecord]:
        return dict(self._rows)

    def restore(self, state: dict[UUID, EnrollmentRecord]) -> None:
        self._rows = dict(state)
