"""Reconciliation service: the only writer of memberships and enrollment records.

Two representations of "student is in class" coexist:

  Membership (class_students)         source of truth for access
  EnrollmentRecord (student_enrollments)  stats-bearing mirror

Every write that touches either one runs inside a single
``Store.transaction()``, so the pair moves together or not at all.  A
failed mirror write rolls back the membership change with it; nothing
is logged-and-ignored.

After a committed write the student's cached progress views are
invalidated: the generation counter is bumped and
``progress:{student_id}:*`` deleted.  Cache errors at that point are
logged; the write has already committed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from classroom.core.errors import (
    AlreadyMemberError,
    CapacityExceededError,
    ClassroomError,
    InvalidArgumentError,
    NotAMemberError,
    NotFoundError,
)
from classroom.core.metrics import ENROLLMENT_OPERATIONS, STATS_DELTAS_APPLIED
from classroom.models.enrollment import (
    ENROLLMENT_STATUSES,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    EnrollmentRecord,
    Membership,
)
from classroom.models.progress import (
    ClassMember,
    EnrollmentStats,
    StudentClassEnrollment,
    simple_average,
)
from classroom.repos.store import Store, StoreTx
from classroom.services.cache import (
    CacheService,
    progress_generation_key,
    progress_pattern,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

# Fields an administrator may set through update_enrollment_fields().
ENROLLMENT_PATCHABLE_FIELDS = frozenset({"status", "completed_at"})


def utc_now() -> int:
    return int(datetime.now(UTC).timestamp())


class ReconciliationService:
    def __init__(
        self, store: Store, cache: CacheService, *, clock: Clock = utc_now
    ) -> None:
        self._store = store
        self._cache = cache
        self._clock = clock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_membership(self, student_id: UUID, class_id: UUID) -> EnrollmentRecord:
        """Place a student in a class and activate (or resurrect) the record.

        Checks run in this order, all inside the transaction and after the
        class row is locked:

          1. student exists, is active and has role=student   NotFoundError
          2. class exists and is active                       NotFoundError
          3. no membership yet                                AlreadyMemberError
          4. member count < capacity                          CapacityExceededError

        A resurrected record keeps its stats; only status and enrolled_at
        move.
        """
        now = self._clock()
        ctx = {"student_id": str(student_id), "class_id": str(class_id)}
        try:
            async with self._store.transaction() as tx:
                if not await tx.users.is_active_student(student_id):
                    raise NotFoundError("student not found")
                school_class = await tx.content.get_class(class_id)
                if school_class is None or not school_class.is_active:
                    raise NotFoundError("class not found")

                await tx.lock_class(class_id)

                if await tx.memberships.get(student_id, class_id) is not None:
                    raise AlreadyMemberError()
                if await tx.memberships.count_by_class(class_id) >= school_class.capacity:
                    raise CapacityExceededError()
                membership = Membership(
                    student_id=student_id, class_id=class_id, created_at=now
                )
                if not await tx.memberships.insert_if_absent(membership):
                    raise AlreadyMemberError()

                record = await tx.enrollments.upsert_active(student_id, class_id, now)
        except ClassroomError as e:
            ENROLLMENT_OPERATIONS.labels(operation="add", outcome=e.code).inc()
            logger.warning(
                "Add membership refused: %s",
                e.message,
                extra={**ctx, "error_code": e.code},
            )
            raise

        ENROLLMENT_OPERATIONS.labels(operation="add", outcome="ok").inc()
        logger.info("Membership added", extra=ctx)
        await self.invalidate_student(student_id)
        return record

    async def remove_membership(self, student_id: UUID, class_id: UUID) -> None:
        """Delete the membership and soft-deactivate the record (stats kept)."""
        now = self._clock()
        ctx = {"student_id": str(student_id), "class_id": str(class_id)}
        try:
            async with self._store.transaction() as tx:
                if not await tx.memberships.delete(student_id, class_id):
                    raise NotAMemberError()
                await tx.enrollments.set_status(
                    student_id, class_id, STATUS_INACTIVE, now
                )
        except ClassroomError as e:
            ENROLLMENT_OPERATIONS.labels(operation="remove", outcome=e.code).inc()
            logger.warning(
                "Remove membership refused: %s",
                e.message,
                extra={**ctx, "error_code": e.code},
            )
            raise

        ENROLLMENT_OPERATIONS.labels(operation="remove", outcome="ok").inc()
        logger.info("Membership removed", extra=ctx)
        await self.invalidate_student(student_id)

    async def apply_stats_delta(
        self,
        student_id: UUID,
        class_id: UUID,
        points_delta: int,
        activity_just_completed: bool,
        *,
        tx: StoreTx | None = None,
    ) -> EnrollmentRecord:
        """Add points (and optionally one completion) to the enrollment record.

        The write is a single atomic upsert-increment keyed by
        (student_id, class_id); average_score is recomputed from the new
        totals in the same statement.

        When ``tx`` is given the delta joins the caller's transaction and
        the caller owns cache invalidation.
        """
        if points_delta < 0:
            raise InvalidArgumentError("points_delta must be >= 0")
        completed_delta = 1 if activity_just_completed else 0

        if tx is not None:
            return await self._apply_stats_delta(
                tx, student_id, class_id, points_delta, completed_delta
            )

        async with self._store.transaction() as own_tx:
            record = await self._apply_stats_delta(
                own_tx, student_id, class_id, points_delta, completed_delta
            )
        await self.invalidate_student(student_id)
        return record

    async def _apply_stats_delta(
        self,
        tx: StoreTx,
        student_id: UUID,
        class_id: UUID,
        points_delta: int,
        completed_delta: int,
    ) -> EnrollmentRecord:
        if await tx.memberships.get(student_id, class_id) is None:
            logger.warning(
                "Stats delta refused: no membership",
                extra={"student_id": str(student_id), "class_id": str(class_id)},
            )
            raise NotAMemberError()
        record = await tx.enrollments.add_stats(
            student_id, class_id, points_delta, completed_delta, self._clock()
        )
        STATS_DELTAS_APPLIED.inc()
        logger.debug(
            "Stats delta applied points=%d completed=%d",
            points_delta,
            completed_delta,
            extra={"student_id": str(student_id), "class_id": str(class_id)},
        )
        return record

    async def update_enrollment_fields(
        self, student_id: UUID, class_id: UUID, patch: dict[str, Any]
    ) -> EnrollmentRecord:
        """Administrative partial update of ``status`` and/or ``completed_at``."""
        if not patch:
            raise InvalidArgumentError("patch must set at least one field")
        unknown = set(patch) - ENROLLMENT_PATCHABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(
                f"fields not patchable: {', '.join(sorted(unknown))}"
            )
        if "status" in patch and patch["status"] not in ENROLLMENT_STATUSES:
            raise InvalidArgumentError(
                f"status must be one of {', '.join(ENROLLMENT_STATUSES)}"
            )
        completed_at = patch.get("completed_at")
        if completed_at is not None and (
            not isinstance(completed_at, int) or completed_at < 0
        ):
            raise InvalidArgumentError("completed_at must be a non-negative timestamp")

        ctx = {"student_id": str(student_id), "class_id": str(class_id)}
        async with self._store.transaction() as tx:
            record = await tx.enrollments.patch(
                student_id, class_id, dict(patch), self._clock()
            )
        if record is None:
            ENROLLMENT_OPERATIONS.labels(operation="patch", outcome="not_found").inc()
            logger.warning("Enrollment patch on missing record", extra=ctx)
            raise NotFoundError("enrollment not found")

        ENROLLMENT_OPERATIONS.labels(operation="patch", outcome="ok").inc()
        logger.info("Enrollment patched fields=%s", sorted(patch), extra=ctx)
        await self.invalidate_student(student_id)
        return record

    async def invalidate_student(self, student_id: UUID) -> None:
        """Drop the student's cached views after a committed write.

        Runs after commit, so a cache outage is logged and never turned
        into a failure of the write that already happened.
        """
        ctx = {"student_id": str(student_id)}
        try:
            await self._cache.incr(progress_generation_key(student_id))
        except Exception:
            logger.warning("Progress generation bump failed", exc_info=True, extra=ctx)
        try:
            await self._cache.delete_pattern(progress_pattern(student_id))
        except Exception:
            logger.warning("Progress cache invalidation failed", exc_info=True, extra=ctx)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_student_memberships(
        self, student_id: UUID
    ) -> list[StudentClassEnrollment]:
        async with self._store.transaction() as tx:
            memberships = await tx.memberships.list_by_student(student_id)
            records = {
                r.class_id: r for r in await tx.enrollments.list_by_student(student_id)
            }
            out = []
            for m in memberships:
                record = records.get(m.class_id) or EnrollmentRecord.placeholder(
                    student_id=student_id, class_id=m.class_id, now=m.created_at
                )
                out.append(
                    StudentClassEnrollment(
                        record=record,
                        school_class=await tx.content.get_class(m.class_id),
                    )
                )
        return out

    async def list_class_memberships(self, class_id: UUID) -> list[ClassMember]:
        async with self._store.transaction() as tx:
            if not await tx.content.class_exists(class_id):
                raise NotFoundError("class not found")
            memberships = await tx.memberships.list_by_class(class_id)
            records = {
                r.student_id: r for r in await tx.enrollments.list_by_class(class_id)
            }
            out = []
            for m in memberships:
                record = records.get(m.student_id) or EnrollmentRecord.placeholder(
                    student_id=m.student_id, class_id=class_id, now=m.created_at
                )
                out.append(
                    ClassMember(
                        record=record,
                        student=await tx.users.get_by_id(m.student_id),
                    )
                )
        return out

    async def get_enrollment(self, student_id: UUID, class_id: UUID) -> EnrollmentRecord:
        """The record for (student, class).

        A member whose record has not been written yet gets a zero-stat
        active view; it is not persisted.
        """
        async with self._store.transaction() as tx:
            record = await tx.enrollments.get(student_id, class_id)
            if record is not None:
                return record
            membership = await tx.memberships.get(student_id, class_id)
        if membership is None:
            raise NotFoundError("enrollment not found")
        return EnrollmentRecord.placeholder(
            student_id=student_id, class_id=class_id, now=membership.created_at
        )

    async def enrollment_stats(self, student_id: UUID) -> EnrollmentStats:
        """Totals over current memberships; records of removed classes are left out."""
        rows = await self.list_student_memberships(student_id)
        records = [r.record for r in rows]
        return EnrollmentStats(
            student_id=student_id,
            total_classes=len(records),
            active_classes=sum(1 for r in records if r.status == STATUS_ACTIVE),
            total_points=sum(r.total_points for r in records),
            completed_activities=sum(r.completed_activities for r in records),
            average_score=simple_average([r.average_score for r in records]),
        )
