"""Activity attempt endpoints.

Students start, submit and abandon their own attempts; the acting
principal is handed to the lifecycle manager, which rejects anyone
acting for another student (admins excepted) before touching the store.
Patching and class-wide listings are staff-only.
"""

from __future__ import annotations

from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from classroom.api.dependencies import (
    ServicesDep,
    StaffDep,
    UserDep,
    caller_student_id,
    require_self_or_staff,
)
from classroom.models.attempt import Attempt, Submission
from classroom.models.progress import AttemptSummary

router = APIRouter(prefix="/v1/attempts", tags=["attempts"])


class StartIn(BaseModel):
    activity_id: UUID
    student_id: UUID | None = None  # defaults to the caller


class SubmitIn(BaseModel):
    activity_id: UUID
    student_id: UUID | None = None
    time_spent: int = Field(ge=0)
    score: int = Field(ge=0)
    max_score: int | None = Field(default=None, ge=0)
    percentage: float | None = Field(default=None, ge=0, le=100)
    answers: dict[str, Any] | None = None


class AttemptPatchIn(BaseModel):
    status: Literal["in_progress", "completed", "abandoned"] | None = None
    score: int | None = Field(default=None, ge=0)
    max_score: int | None = Field(default=None, ge=0)
    percentage: float | None = Field(default=None, ge=0, le=100)
    time_spent: int | None = Field(default=None, ge=0)
    time_limit: int | None = Field(default=None, ge=0)
    answers: dict[str, Any] | None = None
    feedback: str | None = None
    started_at: int | None = Field(default=None, ge=0)
    completed_at: int | None = Field(default=None, ge=0)


class AttemptOut(BaseModel):
    id: UUID
    student_id: UUID
    activity_id: UUID
    status: str
    score: int | None
    max_score: int | None
    percentage: float | None
    time_spent: int | None
    time_limit: int | None
    answers: dict[str, Any] | None
    feedback: str | None
    started_at: int | None
    completed_at: int | None


class AttemptSummaryOut(BaseModel):
    student_id: UUID
    total_attempts: int
    completed: int
    abandoned: int
    total_score: int
    average_score: float
    total_time_spent: int


def attempt_out(a: Attempt) -> AttemptOut:
    return AttemptOut(
        id=a.id,
        student_id=a.student_id,
        activity_id=a.activity_id,
        status=a.status,
        score=a.score,
        max_score=a.max_score,
        percentage=a.percentage,
        time_spent=a.time_spent,
        time_limit=a.time_limit,
        answers=a.answers,
        feedback=a.feedback,
        started_at=a.started_at,
        completed_at=a.completed_at,
    )


def _summary_out(s: AttemptSummary) -> AttemptSummaryOut:
    return AttemptSummaryOut(
        student_id=s.student_id,
        total_attempts=s.total_attempts,
        completed=s.completed,
        abandoned=s.abandoned,
        total_score=s.total_score,
        average_score=s.average_score,
        total_time_spent=s.total_time_spent,
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post("/start", response_model=AttemptOut, status_code=status.HTTP_201_CREATED)
async def start_attempt(
    body: StartIn, principal: UserDep, services: ServicesDep
) -> AttemptOut:
    student_id = body.student_id or caller_student_id(principal)
    attempt = await services.attempts.start(
        student_id, body.activity_id, actor=principal
    )
    return attempt_out(attempt)


@router.post("/submit", response_model=AttemptOut)
async def submit_attempt(
    body: SubmitIn, principal: UserDep, services: ServicesDep
) -> AttemptOut:
    student_id = body.student_id or caller_student_id(principal)
    submission = Submission(
        time_spent=body.time_spent,
        score=body.score,
        max_score=body.max_score,
        percentage=body.percentage,
        answers=body.answers,
    )
    attempt = await services.attempts.submit(
        student_id, body.activity_id, submission, actor=principal
    )
    return attempt_out(attempt)


@router.post("/abandon/{activity_id}", response_model=AttemptOut)
async def abandon_attempt(
    activity_id: UUID,
    principal: UserDep,
    services: ServicesDep,
    student_id: UUID | None = None,
) -> AttemptOut:
    target = student_id or caller_student_id(principal)
    attempt = await services.attempts.abandon(target, activity_id, actor=principal)
    return attempt_out(attempt)


@router.patch("/{student_id}/{activity_id}", response_model=AttemptOut)
async def patch_attempt(
    student_id: UUID,
    activity_id: UUID,
    body: AttemptPatchIn,
    principal: StaffDep,
    services: ServicesDep,
) -> AttemptOut:
    attempt = await services.attempts.update_attempt(
        student_id, activity_id, body.model_dump(exclude_unset=True)
    )
    return attempt_out(attempt)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/my-attempts", response_model=list[AttemptOut])
async def my_attempts(principal: UserDep, services: ServicesDep) -> list[AttemptOut]:
    rows = await services.attempts.list_student_attempts(caller_student_id(principal))
    return [attempt_out(a) for a in rows]


@router.get("/summary/{student_id}", response_model=AttemptSummaryOut)
async def attempt_summary(
    student_id: UUID, principal: UserDep, services: ServicesDep
) -> AttemptSummaryOut:
    require_self_or_staff(principal, student_id)
    return _summary_out(await services.attempts.attempt_summary(student_id))


@router.get("/students/{student_id}", response_model=list[AttemptOut])
async def student_attempts(
    student_id: UUID, principal: UserDep, services: ServicesDep
) -> list[AttemptOut]:
    require_self_or_staff(principal, student_id)
    rows = await services.attempts.list_student_attempts(student_id)
    return [attempt_out(a) for a in rows]


@router.get("/classes/{class_id}", response_model=list[AttemptOut])
async def class_attempts(
    class_id: UUID, principal: StaffDep, services: ServicesDep
) -> list[AttemptOut]:
    rows = await services.attempts.list_class_attempts(class_id)
    return [attempt_out(a) for a in rows]


@router.get("/{student_id}/{activity_id}", response_model=AttemptOut)
async def get_attempt(
    student_id: UUID, activity_id: UUID, principal: UserDep, services: ServicesDep
) -> AttemptOut:
    require_self_or_staff(principal, student_id)
    return attempt_out(await services.attempts.get_attempt(student_id, activity_id))
