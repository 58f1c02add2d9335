from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_SUSPENDED = "suspended"
ENROLLMENT_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_SUSPENDED)


def average_score(total_points: int, completed_activities: int) -> float:
    """The one place the stats invariant is computed (2 dp)."""
    if completed_activities <= 0:
        return 0.0
    return round(total_points / completed_activities, 2)


@dataclass(frozen=True, slots=True)
class Membership:
    """A teacher placed this student in this class.  Source of truth for access."""

    student_id: UUID
    class_id: UUID
    created_at: int = 0


@dataclass(frozen=True, slots=True)
class EnrollmentRecord:
    """Stats-bearing mirror of a membership.

    Derived from membership existence; ``status`` flips to inactive on
    removal while the stats survive for a later re-enrollment.
    """

    id: UUID
    student_id: UUID
    class_id: UUID
    status: str = STATUS_ACTIVE  # active|inactive|suspended
    enrolled_at: int = 0
    completed_at: int | None = None
    total_points: int = 0
    completed_activities: int = 0
    average_score: float = 0.0
    created_at: int = 0
    updated_at: int = 0

    @staticmethod
    def new(*, student_id: UUID, class_id: UUID, now: int) -> EnrollmentRecord:
        return EnrollmentRecord(
            id=uuid4(),
            student_id=student_id,
            class_id=class_id,
            status=STATUS_ACTIVE,
            enrolled_at=now,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def placeholder(*, student_id: UUID, class_id: UUID, now: int) -> EnrollmentRecord:
        """Zero-stat view for a member whose record has not been written yet."""
        return EnrollmentRecord(
            id=UUID(int=0),
            student_id=student_id,
            class_id=class_id,
            enrolled_at=now,
            created_at=now,
            updated_at=now,
        )
