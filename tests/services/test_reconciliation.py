"""Membership and enrollment-record writes stay in lockstep."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

import pytest

from classroom.core.errors import (
    AlreadyMemberError,
    CapacityExceededError,
    InvalidArgumentError,
    NotAMemberError,
    NotFoundError,
)
from classroom.models.enrollment import STATUS_ACTIVE, STATUS_INACTIVE, EnrollmentRecord
from classroom.models.user import ROLE_TEACHER
from classroom.services.cache import progress_key
from classroom.services.container import Services, wire
from tests.conftest import BrokenCache, FakeClock, World, add_class, add_student


def _add(services: Services, world: World) -> EnrollmentRecord:
    return asyncio.run(
        services.reconciliation.add_membership(world.student.id, world.school_class.id)
    )


# ---- add_membership ----


def test_add_creates_membership_and_active_record(
    services: Services, world: World, clock: FakeClock
) -> None:
    record = _add(services, world)

    assert record.status == STATUS_ACTIVE
    assert record.enrolled_at == clock.now
    assert (record.total_points, record.completed_activities) == (0, 0)
    assert asyncio.run(
        world.store.memberships.get(world.student.id, world.school_class.id)
    )


def test_second_add_is_already_member_and_changes_nothing(
    services: Services, world: World
) -> None:
    first = _add(services, world)
    with pytest.raises(AlreadyMemberError):
        _add(services, world)

    record = asyncio.run(
        world.store.enrollments.get(world.student.id, world.school_class.id)
    )
    assert record == first


def test_add_unknown_student_is_not_found(services: Services, world: World) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(
            services.reconciliation.add_membership(uuid4(), world.school_class.id)
        )


def test_add_deactivated_student_is_not_found(services: Services, world: World) -> None:
    world.store.users.set_active(world.student.id, False)
    with pytest.raises(NotFoundError):
        _add(services, world)


def test_add_teacher_as_student_is_not_found(services: Services, world: World) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(
            services.reconciliation.add_membership(
                world.teacher.id, world.school_class.id
            )
        )
    assert world.teacher.role == ROLE_TEACHER


def test_add_to_inactive_class_is_not_found(services: Services, world: World) -> None:
    archived = replace(add_class(world.store, name="Old"), status="archived")
    world.store.content.add_class(archived)
    with pytest.raises(NotFoundError):
        asyncio.run(services.reconciliation.add_membership(world.student.id, archived.id))


def test_full_class_rejects_new_member(services: Services, world: World) -> None:
    tiny = add_class(world.store, name="Tiny", capacity=1)
    other = add_student(world.store, "Alex")
    asyncio.run(services.reconciliation.add_membership(other.id, tiny.id))

    with pytest.raises(CapacityExceededError):
        asyncio.run(services.reconciliation.add_membership(world.student.id, tiny.id))
    assert asyncio.run(world.store.memberships.count_by_class(tiny.id)) == 1
    assert asyncio.run(world.store.enrollments.get(world.student.id, tiny.id)) is None


def test_duplicate_in_full_class_reports_already_member(
    services: Services, world: World
) -> None:
    tiny = add_class(world.store, name="Tiny", capacity=1)
    asyncio.run(services.reconciliation.add_membership(world.student.id, tiny.id))
    with pytest.raises(AlreadyMemberError):
        asyncio.run(services.reconciliation.add_membership(world.student.id, tiny.id))


def test_concurrent_adds_never_exceed_capacity(services: Services, world: World) -> None:
    tiny = add_class(world.store, name="Tiny", capacity=1)
    students = [add_student(world.store, f"s{i}") for i in range(5)]

    async def _race():
        return await asyncio.gather(
            *(services.reconciliation.add_membership(s.id, tiny.id) for s in students),
            return_exceptions=True,
        )

    results = asyncio.run(_race())
    assert sum(isinstance(r, EnrollmentRecord) for r in results) == 1
    assert sum(isinstance(r, CapacityExceededError) for r in results) == 4
    assert asyncio.run(world.store.memberships.count_by_class(tiny.id)) == 1


def test_failed_mirror_write_rolls_back_membership(
    services: Services, world: World, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _boom(*args, **kwargs):
        raise RuntimeError("enrollment table unavailable")

    monkeypatch.setattr(world.store.enrollments, "upsert_active", _boom)
    with pytest.raises(RuntimeError):
        _add(services, world)

    assert (
        asyncio.run(world.store.memberships.get(world.student.id, world.school_class.id))
        is None
    )


# ---- remove_membership / resurrection ----


def test_remove_deactivates_record_and_keeps_stats(
    services: Services, world: World
) -> None:
    _add(services, world)
    asyncio.run(
        services.reconciliation.apply_stats_delta(
            world.student.id, world.school_class.id, 80, True
        )
    )
    asyncio.run(
        services.reconciliation.remove_membership(world.student.id, world.school_class.id)
    )

    record = asyncio.run(
        world.store.enrollments.get(world.student.id, world.school_class.id)
    )
    assert record is not None
    assert record.status == STATUS_INACTIVE
    assert (record.total_points, record.completed_activities) == (80, 1)


def test_remove_non_member_is_not_a_member(services: Services, world: World) -> None:
    with pytest.raises(NotAMemberError):
        asyncio.run(
            services.reconciliation.remove_membership(
                world.student.id, world.school_class.id
            )
        )


def test_readd_resurrects_record_with_stats(
    services: Services, world: World, clock: FakeClock
) -> None:
    first = _add(services, world)
    asyncio.run(
        services.reconciliation.apply_stats_delta(
            world.student.id, world.school_class.id, 50, True
        )
    )
    asyncio.run(
        services.reconciliation.remove_membership(world.student.id, world.school_class.id)
    )
    clock.advance(3600)

    again = _add(services, world)
    assert again.id == first.id
    assert again.status == STATUS_ACTIVE
    assert again.enrolled_at == clock.now
    assert (again.total_points, again.completed_activities) == (50, 1)


# ---- apply_stats_delta ----


def test_stats_delta_keeps_average_invariant(services: Services, world: World) -> None:
    _add(services, world)
    for points in (90, 75, 80):
        record = asyncio.run(
            services.reconciliation.apply_stats_delta(
                world.student.id, world.school_class.id, points, True
            )
        )
    assert record.total_points == 245
    assert record.completed_activities == 3
    assert record.average_score == 81.67


def test_points_only_delta_does_not_count_completion(
    services: Services, world: World
) -> None:
    _add(services, world)
    record = asyncio.run(
        services.reconciliation.apply_stats_delta(
            world.student.id, world.school_class.id, 15, False
        )
    )
    assert record.total_points == 15
    assert record.completed_activities == 0
    assert record.average_score == 0.0


def test_stats_delta_requires_membership(services: Services, world: World) -> None:
    with pytest.raises(NotAMemberError):
        asyncio.run(
            services.reconciliation.apply_stats_delta(
                world.student.id, world.school_class.id, 10, True
            )
        )
    assert (
        asyncio.run(world.store.enrollments.get(world.student.id, world.school_class.id))
        is None
    )


def test_negative_delta_rejected(services: Services, world: World) -> None:
    _add(services, world)
    with pytest.raises(InvalidArgumentError):
        asyncio.run(
            services.reconciliation.apply_stats_delta(
                world.student.id, world.school_class.id, -5, True
            )
        )


def test_concurrent_deltas_are_not_lost(services: Services, world: World) -> None:
    _add(services, world)

    async def _burst():
        await asyncio.gather(
            *(
                services.reconciliation.apply_stats_delta(
                    world.student.id, world.school_class.id, 10, True
                )
                for _ in range(10)
            )
        )

    asyncio.run(_burst())
    record = asyncio.run(
        world.store.enrollments.get(world.student.id, world.school_class.id)
    )
    assert (record.total_points, record.completed_activities) == (100, 10)


# ---- update_enrollment_fields ----


def test_patch_status(services: Services, world: World) -> None:
    _add(services, world)
    record = asyncio.run(
        services.reconciliation.update_enrollment_fields(
            world.student.id, world.school_class.id, {"status": "suspended"}
        )
    )
    assert record.status == "suspended"
    # Access follows the membership row, not the record status.
    assert asyncio.run(
        services.access.can_access_class(world.student.id, world.school_class.id)
    )


@pytest.mark.parametrize(
    "patch",
    [{}, {"total_points": 999}, {"status": "graduated"}, {"completed_at": -1}],
)
def test_patch_rejects_invalid_fields(
    services: Services, world: World, patch: dict
) -> None:
    _add(services, world)
    with pytest.raises(InvalidArgumentError):
        asyncio.run(
            services.reconciliation.update_enrollment_fields(
                world.student.id, world.school_class.id, patch
            )
        )


def test_patch_missing_record_is_not_found(services: Services, world: World) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(
            services.reconciliation.update_enrollment_fields(
                world.student.id, world.school_class.id, {"status": "active"}
            )
        )


# ---- reads ----


def test_duplicate_records_resolve_to_freshest(
    services: Services, world: World, clock: FakeClock
) -> None:
    _add(services, world)
    stale = EnrollmentRecord.new(
        student_id=world.student.id, class_id=world.school_class.id, now=clock.now - 100
    )
    world.store.enrollments._rows[stale.id] = stale
    asyncio.run(
        services.reconciliation.apply_stats_delta(
            world.student.id, world.school_class.id, 40, True
        )
    )

    record = asyncio.run(
        services.reconciliation.get_enrollment(world.student.id, world.school_class.id)
    )
    assert record.id != stale.id
    assert record.total_points == 40


def test_member_without_record_gets_zero_placeholder(
    services: Services, world: World
) -> None:
    _add(services, world)
    world.store.enrollments._rows.clear()

    record = asyncio.run(
        services.reconciliation.get_enrollment(world.student.id, world.school_class.id)
    )
    assert record.status == STATUS_ACTIVE
    assert (record.total_points, record.average_score) == (0, 0.0)


def test_get_enrollment_for_stranger_is_not_found(
    services: Services, world: World
) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(
            services.reconciliation.get_enrollment(
                world.student.id, world.school_class.id
            )
        )


def test_list_class_memberships_unknown_class(services: Services, world: World) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(services.reconciliation.list_class_memberships(world.lesson.id))


def test_enrollment_stats_aggregate_current_memberships(
    services: Services, world: World
) -> None:
    other = add_class(world.store, name="Maths")
    _add(services, world)
    asyncio.run(services.reconciliation.add_membership(world.student.id, other.id))
    asyncio.run(
        services.reconciliation.apply_stats_delta(
            world.student.id, world.school_class.id, 90, True
        )
    )
    asyncio.run(
        services.reconciliation.apply_stats_delta(world.student.id, other.id, 60, True)
    )

    stats = asyncio.run(services.reconciliation.enrollment_stats(world.student.id))
    assert stats.total_classes == 2
    assert stats.active_classes == 2
    assert stats.total_points == 150
    assert stats.average_score == 75.0


def test_enrollment_stats_leave_out_removed_classes(
    services: Services, world: World
) -> None:
    other = add_class(world.store, name="Maths")
    _add(services, world)
    asyncio.run(services.reconciliation.add_membership(world.student.id, other.id))
    asyncio.run(
        services.reconciliation.apply_stats_delta(
            world.student.id, world.school_class.id, 90, True
        )
    )
    asyncio.run(
        services.reconciliation.apply_stats_delta(world.student.id, other.id, 40, True)
    )
    asyncio.run(services.reconciliation.remove_membership(world.student.id, other.id))

    stats = asyncio.run(services.reconciliation.enrollment_stats(world.student.id))
    # The Maths record still holds 40 points but is no longer counted.
    assert (stats.total_classes, stats.total_points) == (1, 90)
    assert stats.average_score == 90.0


# ---- cache invalidation ----


def test_writes_invalidate_student_progress_cache(
    services: Services, world: World
) -> None:
    key = progress_key(world.student.id, "summary")
    asyncio.run(services.cache.set(key, "{}", 60))
    _add(services, world)
    assert asyncio.run(services.cache.get(key)) is None


def test_writes_commit_when_cache_is_down(
    world: World, clock: FakeClock, caplog: pytest.LogCaptureFixture
) -> None:
    svc = wire(world.store, BrokenCache(), cache_ttl=60, clock=clock)
    student, school_class = world.student.id, world.school_class.id

    record = asyncio.run(svc.reconciliation.add_membership(student, school_class))
    assert record.status == STATUS_ACTIVE
    assert asyncio.run(world.store.memberships.get(student, school_class))

    patched = asyncio.run(
        svc.reconciliation.update_enrollment_fields(
            student, school_class, {"completed_at": clock.now}
        )
    )
    assert patched.completed_at == clock.now

    asyncio.run(svc.reconciliation.remove_membership(student, school_class))
    assert asyncio.run(world.store.memberships.get(student, school_class)) is None
    assert "Progress cache invalidation failed" in caplog.text
