"""Enrollment endpoints: teacher membership writes and enrollment reads.

Writes are staff-only (teacher or admin).  Students read their own data,
either through the ``my-*`` routes or by their own id; staff may read
anyone's.  ClassroomError from the services is mapped to HTTP by the
app-level handler in api/errors.py.
"""

from __future__ import annotations

import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from classroom.api.dependencies import (
    ServicesDep,
    StaffDep,
    UserDep,
    caller_student_id,
    require_self_or_staff,
)
from classroom.models.enrollment import EnrollmentRecord
from classroom.models.progress import (
    ClassMember,
    EnrollmentStats,
    StudentClassEnrollment,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class MembershipIn(BaseModel):
    student_id: UUID
    class_id: UUID


class EnrollmentPatchIn(BaseModel):
    status: Literal["active", "inactive", "suspended"] | None = None
    completed_at: int | None = Field(default=None, ge=0)


class EnrollmentOut(BaseModel):
    id: UUID
    student_id: UUID
    class_id: UUID
    status: str
    enrolled_at: int
    completed_at: int | None
    total_points: int
    completed_activities: int
    average_score: float
    updated_at: int


class StudentClassOut(BaseModel):
    enrollment: EnrollmentOut
    class_name: str | None
    class_level: str | None
    class_status: str | None
    capacity: int | None


class ClassMemberOut(BaseModel):
    enrollment: EnrollmentOut
    student_name: str | None
    student_active: bool | None


class EnrollmentStatsOut(BaseModel):
    student_id: UUID
    total_classes: int
    active_classes: int
    total_points: int
    completed_activities: int
    average_score: float


def _enrollment_out(r: EnrollmentRecord) -> EnrollmentOut:
    return EnrollmentOut(
        id=r.id,
        student_id=r.student_id,
        class_id=r.class_id,
        status=r.status,
        enrolled_at=r.enrolled_at,
        completed_at=r.completed_at,
        total_points=r.total_points,
        completed_activities=r.completed_activities,
        average_score=r.average_score,
        updated_at=r.updated_at,
    )


def _student_class_out(e: StudentClassEnrollment) -> StudentClassOut:
    c = e.school_class
    return StudentClassOut(
        enrollment=_enrollment_out(e.record),
        class_name=c.name if c else None,
        class_level=c.level if c else None,
        class_status=c.status if c else None,
        capacity=c.capacity if c else None,
    )


def _class_member_out(m: ClassMember) -> ClassMemberOut:
    return ClassMemberOut(
        enrollment=_enrollment_out(m.record),
        student_name=m.student.name if m.student else None,
        student_active=m.student.is_active if m.student else None,
    )


def _stats_out(s: EnrollmentStats) -> EnrollmentStatsOut:
    return EnrollmentStatsOut(
        student_id=s.student_id,
        total_classes=s.total_classes,
        active_classes=s.active_classes,
        total_points=s.total_points,
        completed_activities=s.completed_activities,
        average_score=s.average_score,
    )


# ---------------------------------------------------------------------------
# Caller's own enrollments
# ---------------------------------------------------------------------------


@router.get("/my-classes", response_model=list[StudentClassOut])
async def my_classes(principal: UserDep, services: ServicesDep) -> list[StudentClassOut]:
    rows = await services.reconciliation.list_student_memberships(
        caller_student_id(principal)
    )
    return [_student_class_out(r) for r in rows]


@router.get("/my-classes/{class_id}", response_model=EnrollmentOut)
async def my_enrollment(
    class_id: UUID, principal: UserDep, services: ServicesDep
) -> EnrollmentOut:
    record = await services.reconciliation.get_enrollment(
        caller_student_id(principal), class_id
    )
    return _enrollment_out(record)


@router.get("/my-stats", response_model=EnrollmentStatsOut)
async def my_stats(principal: UserDep, services: ServicesDep) -> EnrollmentStatsOut:
    stats = await services.reconciliation.enrollment_stats(
        caller_student_id(principal)
    )
    return _stats_out(stats)


# ---------------------------------------------------------------------------
# Staff writes
# ---------------------------------------------------------------------------


@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def add_student_to_class(
    body: MembershipIn, principal: StaffDep, services: ServicesDep
) -> EnrollmentOut:
    record = await services.reconciliation.add_membership(body.student_id, body.class_id)
    logger.info(
        "Membership added by user=%s",
        principal.user_id,
        extra={"student_id": str(body.student_id), "class_id": str(body.class_id)},
    )
    return _enrollment_out(record)


@router.delete(
    "/{class_id}/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_student_from_class(
    class_id: UUID, student_id: UUID, principal: StaffDep, services: ServicesDep
) -> Response:
    await services.reconciliation.remove_membership(student_id, class_id)
    logger.info(
        "Membership removed by user=%s",
        principal.user_id,
        extra={"student_id": str(student_id), "class_id": str(class_id)},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{class_id}/students/{student_id}", response_model=EnrollmentOut)
async def patch_enrollment(
    class_id: UUID,
    student_id: UUID,
    body: EnrollmentPatchIn,
    principal: StaffDep,
    services: ServicesDep,
) -> EnrollmentOut:
    record = await services.reconciliation.update_enrollment_fields(
        student_id, class_id, body.model_dump(exclude_unset=True)
    )
    return _enrollment_out(record)


# ---------------------------------------------------------------------------
# Reads by id
# ---------------------------------------------------------------------------


@router.get("/students/{student_id}", response_model=list[StudentClassOut])
async def student_classes(
    student_id: UUID, principal: UserDep, services: ServicesDep
) -> list[StudentClassOut]:
    require_self_or_staff(principal, student_id)
    rows = await services.reconciliation.list_student_memberships(student_id)
    return [_student_class_out(r) for r in rows]


@router.get("/classes/{class_id}", response_model=list[ClassMemberOut])
async def class_members(
    class_id: UUID, principal: StaffDep, services: ServicesDep
) -> list[ClassMemberOut]:
    rows = await services.reconciliation.list_class_memberships(class_id)
    return [_class_member_out(m) for m in rows]


@router.get("/{class_id}/students/{student_id}", response_model=EnrollmentOut)
async def get_enrollment(
    class_id: UUID, student_id: UUID, principal: UserDep, services: ServicesDep
) -> EnrollmentOut:
    require_self_or_staff(principal, student_id)
    record = await services.reconciliation.get_enrollment(student_id, class_id)
    return _enrollment_out(record)


@router.get("/stats/{student_id}", response_model=EnrollmentStatsOut)
async def student_stats(
    student_id: UUID, principal: UserDep, services: ServicesDep
) -> EnrollmentStatsOut:
    require_self_or_staff(principal, student_id)
    stats = await services.reconciliation.enrollment_stats(student_id)
    return _stats_out(stats)
