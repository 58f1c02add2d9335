"""Access-gated content for the calling student.

Everything here goes through the AccessControlResolver: a student sees a
class's lessons and activities only while a membership row exists.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from classroom.api.dependencies import ServicesDep, UserDep, caller_student_id
from classroom.models.content import Activity

router = APIRouter(prefix="/v1/learn", tags=["learn"])


class LessonOut(BaseModel):
    id: UUID
    class_id: UUID
    title: str
    position: int
    activity_count: int


class ActivityOut(BaseModel):
    id: UUID
    lesson_id: UUID
    title: str
    type: str
    points: int
    time_limit_minutes: int | None


class ActivityDetailOut(ActivityOut):
    class_id: UUID


def _activity_out(a: Activity) -> ActivityOut:
    return ActivityOut(
        id=a.id,
        lesson_id=a.lesson_id,
        title=a.title,
        type=a.type,
        points=a.points,
        time_limit_minutes=a.time_limit_minutes,
    )


@router.get("/classes/{class_id}/lessons", response_model=list[LessonOut])
async def class_lessons(
    class_id: UUID, principal: UserDep, services: ServicesDep
) -> list[LessonOut]:
    views = await services.access.lessons_for_student(
        caller_student_id(principal), class_id
    )
    return [
        LessonOut(
            id=v.lesson.id,
            class_id=v.lesson.class_id,
            title=v.lesson.title,
            position=v.lesson.position,
            activity_count=v.activity_count,
        )
        for v in views
    ]


@router.get("/lessons/{lesson_id}/activities", response_model=list[ActivityOut])
async def lesson_activities(
    lesson_id: UUID, principal: UserDep, services: ServicesDep
) -> list[ActivityOut]:
    activities = await services.access.activities_for_student(
        caller_student_id(principal), lesson_id
    )
    return [_activity_out(a) for a in activities]


@router.get("/activities/{activity_id}", response_model=ActivityDetailOut)
async def activity_detail(
    activity_id: UUID, principal: UserDep, services: ServicesDep
) -> ActivityDetailOut:
    view = await services.access.activity_for_student(
        caller_student_id(principal), activity_id
    )
    return ActivityDetailOut(
        **_activity_out(view.activity).model_dump(), class_id=view.class_id
    )
