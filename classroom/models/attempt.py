from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

ATTEMPT_IN_PROGRESS = "in_progress"
ATTEMPT_COMPLETED = "completed"
ATTEMPT_ABANDONED = "abandoned"
ATTEMPT_STATUSES = (ATTEMPT_IN_PROGRESS, ATTEMPT_COMPLETED, ATTEMPT_ABANDONED)

# Fields an administrator may overwrite through update_attempt().
ATTEMPT_PATCHABLE_FIELDS = frozenset(
    {
        "status",
        "score",
        "max_score",
        "percentage",
        "time_spent",
        "time_limit",
        "answers",
        "feedback",
        "started_at",
        "completed_at",
    }
)


@dataclass(frozen=True, slots=True)
class Attempt:
    """One student's interaction with one activity.

    At most one row per (student_id, activity_id); resuming overwrites
    ``started_at`` rather than creating another row.
    """

    id: UUID
    student_id: UUID
    activity_id: UUID
    status: str = ATTEMPT_IN_PROGRESS  # in_progress|completed|abandoned
    score: int | None = None
    max_score: int | None = None
    percentage: float | None = None
    time_spent: int | None = None  # seconds
    time_limit: int | None = None  # seconds
    answers: dict[str, Any] | None = field(default=None, hash=False, compare=False)
    feedback: str | None = None
    started_at: int | None = None
    completed_at: int | None = None
    created_at: int = 0
    updated_at: int = 0

    @property
    def is_completed(self) -> bool:
        return self.status == ATTEMPT_COMPLETED

    @staticmethod
    def new(
        *,
        student_id: UUID,
        activity_id: UUID,
        now: int,
        time_limit: int | None = None,
    ) -> Attempt:
        return Attempt(
            id=uuid4(),
            student_id=student_id,
            activity_id=activity_id,
            status=ATTEMPT_IN_PROGRESS,
            time_limit=time_limit,
            started_at=now,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True, slots=True)
class Submission:
    """What a student hands in when finishing an attempt."""

    time_spent: int
    score: int
    max_score: int | None = None
    percentage: float | None = None
    answers: dict[str, Any] | None = None
