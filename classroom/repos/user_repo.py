from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from classroom.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def is_active_student(self, user_id: UUID) -> bool: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, User] = {}

    def add(self, user: User) -> None:
        if user.id in self._by_id:
            raise ValueError("user already exists")
        self._by_id[user.id] = user

    def set_active(self, user_id: UUID, is_active: bool) -> None:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")
        self._by_id[user_id] = replace(u, is_active=is_active)

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def is_active_student(self, user_id: UUID) -> bool:
        u = self._by_id.get(user_id)
        return u is not None and u.is_active_student
