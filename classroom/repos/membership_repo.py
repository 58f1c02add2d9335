from __future__ import annotations

from typing import Protocol
from uuid import UUID

from classroom.models.enrollment import Membership


class MembershipRepo(Protocol):
    async def get(self, student_id: UUID, class_id: UUID) -> Membership | None: ...
    async def insert_if_absent(self, membership: Membership) -> bool: ...
    async def delete(self, student_id: UUID, class_id: UUID) -> bool: ...
    async def count_by_class(self, class_id: UUID) -> int: ...
    async def list_by_student(self, student_id: UUID) -> list[Membership]: ...
    async def list_by_class(self, class_id: UUID) -> list[Membership]: ...


class InMemoryMembershipRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Membership] = {}

    async def get(self, student_id: UUID, class_id: UUID) -> Membership | None:
        return self._store.get((student_id, class_id))

    async def insert_if_absent(self, membership: Membership) -> bool:
        # Unique (student_id, class_id): a duplicate reports False instead
        # of overwriting, like INSERT ... ON CONFLICT DO NOTHING.
        key = (membership.student_id, membership.class_id)
        if key in self._store:
            return False
        self._store[key] = membership
        return True

    async def delete(self, student_id: UUID, class_id: UUID) -> bool:
        return self._store.pop((student_id, class_id), None) is not None

    async def count_by_class(self, class_id: UUID) -> int:
        return sum(1 for m in self._store.values() if m.class_id == class_id)

    async def list_by_student(self, student_id: UUID) -> list[Membership]:
        return [m for m in self._store.values() if m.student_id == student_id]

    async def list_by_class(self, class_id: UUID) -> list[Membership]:
        return [m for m in self._store.values() if m.class_id == class_id]

    def snapshot(self) -> dict[tuple[UUID, UUID], Membership]:
        return dict(self._store)

    def restore(self, state: dict[tuple[UUID, UUID], Membership]) -> None:
        self._store = dict(state)
