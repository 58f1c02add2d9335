from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from classroom.models.user import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system and
    handed to the services, which compare it against the student the
    operation targets before touching any state.
    """

    user_id: str
    roles: frozenset[str]

    @property
    def uuid(self) -> UUID:
        return UUID(self.user_id)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    def is_staff(self) -> bool:
        return bool(self.roles & {ROLE_TEACHER, ROLE_ADMIN})

    def is_student(self) -> bool:
        return ROLE_STUDENT in self.roles

    def acts_for(self, student_id: UUID) -> bool:
        """True if this principal may act as ``student_id`` (self or admin)."""
        if self.is_admin():
            return True
        try:
            return self.uuid == student_id
        except ValueError:
            return False
