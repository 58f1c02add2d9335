"""Progress and dashboard endpoints.

Student views are read-through cached by the ProgressAggregator
(``progress:{student_id}:summary|dashboard``) and invalidated by every
reconciliation write for that student.  The class view is computed from
attempts on each call.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from classroom.api.attempts import AttemptOut, attempt_out
from classroom.api.dependencies import (
    ServicesDep,
    StaffDep,
    UserDep,
    caller_student_id,
    require_self_or_staff,
)
from classroom.models.progress import (
    ClassProgress,
    StudentDashboard,
    StudentProgress,
)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class ClassProgressEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    class_id: UUID
    class_name: str
    total_activities: int
    completed_activities: int
    completion_rate: float
    total_points: int
    average_score: float


class StudentProgressOut(BaseModel):
    student_id: UUID
    total_classes: int
    total_points: int
    total_completed_activities: int
    average_score: float
    classes: list[ClassProgressEntryOut]


class DashboardCardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    class_id: UUID
    class_name: str
    class_level: str
    enrolled_at: int | None
    total_points: int
    completed_activities: int
    average_score: float
    lesson_count: int


class StudentDashboardOut(BaseModel):
    student_id: UUID
    total_classes: int
    classes: list[DashboardCardOut]


class MemberProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: UUID
    in_progress: int
    completed: int
    abandoned: int
    total_score: int
    average_score: float
    total_time_spent: int


class ClassProgressOut(BaseModel):
    class_id: UUID
    total_activities: int
    members: list[MemberProgressOut]
    attempts: list[AttemptOut]


def _progress_out(p: StudentProgress) -> StudentProgressOut:
    return StudentProgressOut(
        student_id=p.student_id,
        total_classes=p.total_classes,
        total_points=p.total_points,
        total_completed_activities=p.total_completed_activities,
        average_score=p.average_score,
        classes=[ClassProgressEntryOut.model_validate(c) for c in p.classes],
    )


def _dashboard_out(d: StudentDashboard) -> StudentDashboardOut:
    return StudentDashboardOut(
        student_id=d.student_id,
        total_classes=d.total_classes,
        classes=[DashboardCardOut.model_validate(c) for c in d.classes],
    )


def _class_progress_out(cp: ClassProgress) -> ClassProgressOut:
    return ClassProgressOut(
        class_id=cp.class_id,
        total_activities=cp.total_activities,
        members=[MemberProgressOut.model_validate(m) for m in cp.members],
        attempts=[attempt_out(a) for a in cp.attempts],
    )


@router.get("/me", response_model=StudentProgressOut)
async def my_progress(principal: UserDep, services: ServicesDep) -> StudentProgressOut:
    progress = await services.progress.student_progress(caller_student_id(principal))
    return _progress_out(progress)


@router.get("/me/dashboard", response_model=StudentDashboardOut)
async def my_dashboard(principal: UserDep, services: ServicesDep) -> StudentDashboardOut:
    dashboard = await services.progress.student_dashboard(caller_student_id(principal))
    return _dashboard_out(dashboard)


@router.get("/students/{student_id}", response_model=StudentProgressOut)
async def student_progress(
    student_id: UUID, principal: UserDep, services: ServicesDep
) -> StudentProgressOut:
    require_self_or_staff(principal, student_id)
    return _progress_out(await services.progress.student_progress(student_id))


@router.get("/students/{student_id}/dashboard", response_model=StudentDashboardOut)
async def student_dashboard(
    student_id: UUID, principal: UserDep, services: ServicesDep
) -> StudentDashboardOut:
    require_self_or_staff(principal, student_id)
    return _dashboard_out(await services.progress.student_dashboard(student_id))


@router.get("/classes/{class_id}", response_model=ClassProgressOut)
async def class_progress(
    class_id: UUID, principal: StaffDep, services: ServicesDep
) -> ClassProgressOut:
    return _class_progress_out(await services.progress.class_progress(class_id))
