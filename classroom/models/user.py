from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

ROLE_STUDENT = "student"
ROLE_TEACHER = "teacher"
ROLE_ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    name: str
    role: str = ROLE_STUDENT  # student|teacher|admin
    is_active: bool = True

    @property
    def is_active_student(self) -> bool:
        return self.is_active and self.role == ROLE_STUDENT

    @staticmethod
    def new(*, name: str, role: str = ROLE_STUDENT) -> User:
        return User(id=uuid4(), name=name, role=role, is_active=True)
