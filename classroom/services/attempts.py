"""Attempt lifecycle manager.

State machine per (student_id, activity_id):

    NONE --start--> IN_PROGRESS --submit--> COMPLETED   (terminal)
                        |   ^
                 abandon|   |start (resume, refreshes started_at)
                        v   |
                     ABANDONED

Only ``update_attempt`` (administrative) may change a COMPLETED row.

Submission is one transaction: the conditional "not completed ->
completed" update and the enrollment stats delta commit together.  Two
concurrent submits cannot both win the conditional update, so the delta
is applied exactly once.

Identity checks (``actor``) run before the transaction is opened: a
student acting for somebody else never reaches the store.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from classroom.core.errors import (
    AlreadyCompletedError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from classroom.core.metrics import ATTEMPT_TRANSITIONS
from classroom.models.attempt import (
    ATTEMPT_ABANDONED,
    ATTEMPT_COMPLETED,
    ATTEMPT_PATCHABLE_FIELDS,
    ATTEMPT_STATUSES,
    Attempt,
    Submission,
)
from classroom.models.principal import Principal
from classroom.models.progress import AttemptSummary
from classroom.repos.store import Store
from classroom.services.access_control import (
    AccessControlResolver,
    resolve_activity_class,
)
from classroom.services.reconciliation import Clock, ReconciliationService, utc_now

logger = logging.getLogger(__name__)


def _ctx(student_id: UUID, activity_id: UUID) -> dict[str, str]:
    return {"student_id": str(student_id), "activity_id": str(activity_id)}


def _require_acts_for(actor: Principal | None, student_id: UUID) -> None:
    if actor is not None and not actor.acts_for(student_id):
        logger.warning(
            "Identity mismatch: user=%s acting for student=%s",
            actor.user_id,
            student_id,
        )
        raise ForbiddenError("cannot act on behalf of another student")


class AttemptLifecycleManager:
    def __init__(
        self,
        store: Store,
        access: AccessControlResolver,
        reconciliation: ReconciliationService,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._access = access
        self._reconciliation = reconciliation
        self._clock = clock

    async def start(
        self,
        student_id: UUID,
        activity_id: UUID,
        *,
        actor: Principal | None = None,
    ) -> Attempt:
        _require_acts_for(actor, student_id)
        now = self._clock()
        ctx = _ctx(student_id, activity_id)

        async with self._store.transaction() as tx:
            if not await self._access.can_access_activity(
                student_id, activity_id, tx=tx
            ):
                logger.warning("Start refused: no access to activity", extra=ctx)
                raise ForbiddenError("no access to this activity")
            if not await tx.users.is_active_student(student_id):
                raise NotFoundError("student not found")

            existing = await tx.attempts.get(student_id, activity_id)
            if existing is not None and existing.is_completed:
                raise AlreadyCompletedError()

            if existing is None:
                seed = await tx.content.activity_points_and_time_limit(activity_id)
                minutes = seed[1] if seed is not None else None
                attempt = Attempt.new(
                    student_id=student_id,
                    activity_id=activity_id,
                    now=now,
                    time_limit=minutes * 60 if minutes is not None else None,
                )
                if await tx.attempts.insert_if_absent(attempt):
                    ATTEMPT_TRANSITIONS.labels(transition="start").inc()
                    logger.info("Attempt started", extra=ctx)
                    return attempt

            # Existing row, or a concurrent start inserted first.
            resumed = await tx.attempts.resume(student_id, activity_id, now)
            if resumed is None:
                raise AlreadyCompletedError()

        ATTEMPT_TRANSITIONS.labels(transition="resume").inc()
        logger.info("Attempt resumed", extra=ctx)
        return resumed

    async def submit(
        self,
        student_id: UUID,
        activity_id: UUID,
        submission: Submission,
        *,
        actor: Principal | None = None,
    ) -> Attempt:
        _require_acts_for(actor, student_id)
        if submission.time_spent < 0:
            raise InvalidArgumentError("time_spent must be >= 0")
        if submission.score < 0:
            raise InvalidArgumentError("score must be >= 0")
        now = self._clock()
        ctx = _ctx(student_id, activity_id)

        try:
            async with self._store.transaction() as tx:
                current = await tx.attempts.get(student_id, activity_id)
                if current is None:
                    raise NotFoundError("attempt not found")
                if current.is_completed:
                    raise AlreadyCompletedError()

                class_id = await resolve_activity_class(tx, activity_id)
                if class_id is None:
                    raise NotFoundError("activity not found")
                if not await self._access.can_access_class(
                    student_id, class_id, tx=tx
                ):
                    logger.warning("Submit refused: no access to activity", extra=ctx)
                    raise ForbiddenError("no access to this activity")

                completed = await tx.attempts.complete(
                    student_id, activity_id, submission, now
                )
                if completed is None:
                    raise AlreadyCompletedError()

                await self._reconciliation.apply_stats_delta(
                    student_id, class_id, submission.score, True, tx=tx
                )
        except AlreadyCompletedError:
            ATTEMPT_TRANSITIONS.labels(transition="submit_rejected").inc()
            logger.warning("Resubmission rejected", extra=ctx)
            raise

        ATTEMPT_TRANSITIONS.labels(transition="submit").inc()
        logger.info("Attempt submitted score=%d", submission.score, extra=ctx)
        await self._reconciliation.invalidate_student(student_id)
        return completed

    async def abandon(
        self,
        student_id: UUID,
        activity_id: UUID,
        *,
        actor: Principal | None = None,
    ) -> Attempt:
        """Mark an attempt abandoned.  Never touches enrollment stats."""
        _require_acts_for(actor, student_id)
        async with self._store.transaction() as tx:
            current = await tx.attempts.get(student_id, activity_id)
            if current is None:
                raise NotFoundError("attempt not found")
            if current.is_completed:
                raise AlreadyCompletedError()
            abandoned = await tx.attempts.set_status(
                student_id, activity_id, ATTEMPT_ABANDONED, self._clock()
            )
            if abandoned is None:
                raise NotFoundError("attempt not found")

        ATTEMPT_TRANSITIONS.labels(transition="abandon").inc()
        logger.info("Attempt abandoned", extra=_ctx(student_id, activity_id))
        return abandoned

    async def update_attempt(
        self, student_id: UUID, activity_id: UUID, patch: dict[str, Any]
    ) -> Attempt:
        """Administrative partial update; no state-machine enforcement."""
        if not patch:
            raise InvalidArgumentError("patch must set at least one field")
        unknown = set(patch) - ATTEMPT_PATCHABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(
                f"fields not patchable: {', '.join(sorted(unknown))}"
            )
        if "status" in patch and patch["status"] not in ATTEMPT_STATUSES:
            raise InvalidArgumentError(
                f"status must be one of {', '.join(ATTEMPT_STATUSES)}"
            )

        async with self._store.transaction() as tx:
            updated = await tx.attempts.patch(
                student_id, activity_id, dict(patch), self._clock()
            )
        if updated is None:
            raise NotFoundError("attempt not found")

        ATTEMPT_TRANSITIONS.labels(transition="admin_update").inc()
        logger.info(
            "Attempt updated fields=%s",
            sorted(patch),
            extra=_ctx(student_id, activity_id),
        )
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_attempt(self, student_id: UUID, activity_id: UUID) -> Attempt:
        async with self._store.transaction() as tx:
            attempt = await tx.attempts.get(student_id, activity_id)
        if attempt is None:
            raise NotFoundError("attempt not found")
        return attempt

    async def list_student_attempts(self, student_id: UUID) -> list[Attempt]:
        async with self._store.transaction() as tx:
            return await tx.attempts.list_by_student(student_id)

    async def list_class_attempts(self, class_id: UUID) -> list[Attempt]:
        async with self._store.transaction() as tx:
            if not await tx.content.class_exists(class_id):
                raise NotFoundError("class not found")
            activity_ids = await tx.content.list_class_activity_ids(class_id)
            return await tx.attempts.list_by_activities(activity_ids)

    async def attempt_summary(self, student_id: UUID) -> AttemptSummary:
        attempts = await self.list_student_attempts(student_id)
        completed = [a for a in attempts if a.status == ATTEMPT_COMPLETED]
        total_score = sum(a.score or 0 for a in completed)
        return AttemptSummary(
            student_id=student_id,
            total_attempts=len(attempts),
            completed=len(completed),
            abandoned=sum(1 for a in attempts if a.status == ATTEMPT_ABANDONED),
            total_score=total_score,
            average_score=round(total_score / len(completed), 2) if completed else 0.0,
            total_time_spent=sum(a.time_spent or 0 for a in completed),
        )
