"""Read models assembled by the progress aggregator.

None of these are persisted.  StudentProgress and StudentDashboard
round-trip through plain dicts so the aggregator can keep them in the
read-through cache.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any
from uuid import UUID

from classroom.models.attempt import Attempt
from classroom.models.content import SchoolClass
from classroom.models.enrollment import EnrollmentRecord
from classroom.models.user import User


def simple_average(values: list[float]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


@dataclass(frozen=True, slots=True)
class ClassProgressEntry:
    class_id: UUID
    class_name: str
    total_activities: int = 0
    completed_activities: int = 0
    completion_rate: float = 0.0
    total_points: int = 0
    average_score: float = 0.0


@dataclass(frozen=True, slots=True)
class StudentProgress:
    student_id: UUID
    total_classes: int
    total_points: int
    total_completed_activities: int
    average_score: float
    classes: tuple[ClassProgressEntry, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StudentProgress:
        return StudentProgress(
            student_id=UUID(str(data["student_id"])),
            total_classes=data["total_classes"],
            total_points=data["total_points"],
            total_completed_activities=data["total_completed_activities"],
            average_score=data["average_score"],
            classes=tuple(
                ClassProgressEntry(**{**c, "class_id": UUID(str(c["class_id"]))})
                for c in data["classes"]
            ),
        )


@dataclass(frozen=True, slots=True)
class DashboardCard:
    class_id: UUID
    class_name: str
    class_level: str = "beginner"
    enrolled_at: int | None = None
    total_points: int = 0
    completed_activities: int = 0
    average_score: float = 0.0
    lesson_count: int = 0


@dataclass(frozen=True, slots=True)
class StudentDashboard:
    student_id: UUID
    total_classes: int
    classes: tuple[DashboardCard, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StudentDashboard:
        return StudentDashboard(
            student_id=UUID(str(data["student_id"])),
            total_classes=data["total_classes"],
            classes=tuple(
                DashboardCard(**{**c, "class_id": UUID(str(c["class_id"]))})
                for c in data["classes"]
            ),
        )


@dataclass(frozen=True, slots=True)
class MemberAttemptStats:
    student_id: UUID
    in_progress: int = 0
    completed: int = 0
    abandoned: int = 0
    total_score: int = 0
    average_score: float = 0.0
    total_time_spent: int = 0


@dataclass(frozen=True, slots=True)
class ClassProgress:
    """Teacher-facing view computed from attempts alone."""

    class_id: UUID
    total_activities: int
    members: tuple[MemberAttemptStats, ...] = ()
    attempts: tuple[Attempt, ...] = ()


@dataclass(frozen=True, slots=True)
class AttemptSummary:
    student_id: UUID
    total_attempts: int = 0
    completed: int = 0
    abandoned: int = 0
    total_score: int = 0
    average_score: float = 0.0
    total_time_spent: int = 0


@dataclass(frozen=True, slots=True)
class EnrollmentStats:
    student_id: UUID
    total_classes: int = 0
    active_classes: int = 0
    total_points: int = 0
    completed_activities: int = 0
    average_score: float = 0.0


@dataclass(frozen=True, slots=True)
class StudentClassEnrollment:
    """A membership seen from the student's side."""

    record: EnrollmentRecord
    school_class: SchoolClass | None = None


@dataclass(frozen=True, slots=True)
class ClassMember:
    """A membership seen from the class's side."""

    record: EnrollmentRecord
    student: User | None = None
