"""Progress aggregator: read-only views over memberships, records and attempts.

  student_progress   per-class completion rate + grand totals   (cached)
  student_dashboard  per-class summary cards                    (cached)
  class_progress     teacher view computed from attempts alone  (uncached)

Iteration is always over memberships, so a class the student was removed
from drops out of both student views even though its inactive record
(and its stats) still exist.  A member without a record yet shows zeroes.

The dashboard degrades per class: if building one card fails, that card
falls back to zero values and the rest of the response is still served.
On Postgres each card runs inside a SAVEPOINT so a failed statement does
not poison the surrounding read transaction.
"""

from __future__ import annotations

import json
import logging
from uuid import UUID

from classroom.core.errors import NotFoundError
from classroom.core.metrics import CACHE_OPERATIONS
from classroom.models.attempt import (
    ATTEMPT_ABANDONED,
    ATTEMPT_COMPLETED,
    ATTEMPT_IN_PROGRESS,
    Attempt,
)
from classroom.models.enrollment import EnrollmentRecord
from classroom.models.progress import (
    ClassProgress,
    ClassProgressEntry,
    DashboardCard,
    MemberAttemptStats,
    StudentDashboard,
    StudentProgress,
    simple_average,
)
from classroom.repos.store import Store, StoreTx
from classroom.services.cache import (
    CacheService,
    progress_generation_key,
    progress_key,
)

logger = logging.getLogger(__name__)


def completion_rate(completed: int, total: int) -> float:
    """Percent of a class's activities completed; 0 when it has none."""
    if total <= 0:
        return 0.0
    return min(round(completed / total * 100, 2), 100.0)


class ProgressAggregator:
    def __init__(self, store: Store, cache: CacheService, *, cache_ttl: int) -> None:
        self._store = store
        self._cache = cache
        self._cache_ttl = cache_ttl

    # ------------------------------------------------------------------
    # Read-through cache helpers
    # ------------------------------------------------------------------

    async def _generation(self, student_id: UUID) -> int | None:
        """Current invalidation generation; None when the cache is unreachable."""
        key = progress_generation_key(student_id)
        try:
            raw = await self._cache.get(key)
        except Exception:
            logger.warning("Progress cache read failed key=%s", key, exc_info=True)
            return None
        return int(raw) if raw is not None else 0

    async def _cache_get(self, key: str, generation: int) -> dict | None:
        try:
            cached = await self._cache.get(key)
        except Exception:
            logger.warning("Progress cache read failed key=%s", key, exc_info=True)
            return None
        entry = json.loads(cached) if cached is not None else None
        if entry is None or entry.get("generation") != generation:
            CACHE_OPERATIONS.labels(operation="miss").inc()
            return None
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return entry["view"]

    async def _cache_set(self, key: str, generation: int, payload: dict) -> None:
        entry = {"generation": generation, "view": payload}
        try:
            await self._cache.set(key, json.dumps(entry, default=str), self._cache_ttl)
        except Exception:
            logger.warning("Progress cache write failed key=%s", key, exc_info=True)

    # ------------------------------------------------------------------
    # Student views
    # ------------------------------------------------------------------

    async def student_progress(self, student_id: UUID) -> StudentProgress:
        key = progress_key(student_id, "summary")
        # Read before computing: a write committed after this point bumps
        # the generation and orphans whatever this call stores.
        generation = await self._generation(student_id)
        if generation is not None:
            cached = await self._cache_get(key, generation)
            if cached is not None:
                return StudentProgress.from_dict(cached)

        progress = await self._compute_progress(student_id)
        if generation is not None:
            await self._cache_set(key, generation, progress.to_dict())
        return progress

    async def _compute_progress(self, student_id: UUID) -> StudentProgress:
        entries: list[ClassProgressEntry] = []
        async with self._store.transaction() as tx:
            memberships = await tx.memberships.list_by_student(student_id)
            records = await _records_by_class(tx, student_id)
            for m in memberships:
                school_class = await tx.content.get_class(m.class_id)
                total = await tx.content.count_class_activities(m.class_id)
                record = records.get(m.class_id)
                completed = record.completed_activities if record else 0
                entries.append(
                    ClassProgressEntry(
                        class_id=m.class_id,
                        class_name=school_class.name if school_class else "",
                        total_activities=total,
                        completed_activities=completed,
                        completion_rate=completion_rate(completed, total),
                        total_points=record.total_points if record else 0,
                        average_score=record.average_score if record else 0.0,
                    )
                )

        return StudentProgress(
            student_id=student_id,
            total_classes=len(entries),
            total_points=sum(e.total_points for e in entries),
            total_completed_activities=sum(e.completed_activities for e in entries),
            average_score=simple_average([e.average_score for e in entries]),
            classes=tuple(entries),
        )

    async def student_dashboard(self, student_id: UUID) -> StudentDashboard:
        key = progress_key(student_id, "dashboard")
        generation = await self._generation(student_id)
        if generation is not None:
            cached = await self._cache_get(key, generation)
            if cached is not None:
                return StudentDashboard.from_dict(cached)

        dashboard = await self._compute_dashboard(student_id)
        if generation is not None:
            await self._cache_set(key, generation, dashboard.to_dict())
        return dashboard

    async def _compute_dashboard(self, student_id: UUID) -> StudentDashboard:
        cards: list[DashboardCard] = []
        async with self._store.transaction() as tx:
            memberships = await tx.memberships.list_by_student(student_id)
            records = await _records_by_class(tx, student_id)
            for m in memberships:
                try:
                    async with tx.savepoint():
                        card = await _dashboard_card(
                            tx, m.class_id, records.get(m.class_id), m.created_at
                        )
                except Exception:
                    logger.warning(
                        "Dashboard card degraded to defaults",
                        exc_info=True,
                        extra={"student_id": str(student_id), "class_id": str(m.class_id)},
                    )
                    card = DashboardCard(class_id=m.class_id, class_name="")
                cards.append(card)

        return StudentDashboard(
            student_id=student_id, total_classes=len(cards), classes=tuple(cards)
        )

    # ------------------------------------------------------------------
    # Teacher view
    # ------------------------------------------------------------------

    async def class_progress(self, class_id: UUID) -> ClassProgress:
        async with self._store.transaction() as tx:
            if not await tx.content.class_exists(class_id):
                raise NotFoundError("class not found")
            activity_ids = await tx.content.list_class_activity_ids(class_id)
            attempts = await tx.attempts.list_by_activities(activity_ids)
            members = await tx.memberships.list_by_class(class_id)

        # Current members first (possibly with no attempts), then anyone
        # who attempted while a member and has since been removed.
        by_student: dict[UUID, list[Attempt]] = {m.student_id: [] for m in members}
        for a in attempts:
            by_student.setdefault(a.student_id, []).append(a)

        return ClassProgress(
            class_id=class_id,
            total_activities=len(activity_ids),
            members=tuple(
                _member_stats(sid, rows) for sid, rows in by_student.items()
            ),
            attempts=tuple(attempts),
        )


async def _records_by_class(tx: StoreTx, student_id: UUID) -> dict[UUID, EnrollmentRecord]:
    return {r.class_id: r for r in await tx.enrollments.list_by_student(student_id)}


async def _dashboard_card(
    tx: StoreTx,
    class_id: UUID,
    record: EnrollmentRecord | None,
    member_since: int,
) -> DashboardCard:
    school_class = await tx.content.get_class(class_id)
    if school_class is None:
        raise NotFoundError("class not found")
    lessons = await tx.content.list_lessons(class_id)
    return DashboardCard(
        class_id=class_id,
        class_name=school_class.name,
        class_level=school_class.level,
        enrolled_at=record.enrolled_at if record else member_since,
        total_points=record.total_points if record else 0,
        completed_activities=record.completed_activities if record else 0,
        average_score=record.average_score if record else 0.0,
        lesson_count=len(lessons),
    )


def _member_stats(student_id: UUID, attempts: list[Attempt]) -> MemberAttemptStats:
    completed = [a for a in attempts if a.status == ATTEMPT_COMPLETED]
    total_score = sum(a.score or 0 for a in completed)
    return MemberAttemptStats(
        student_id=student_id,
        in_progress=sum(1 for a in attempts if a.status == ATTEMPT_IN_PROGRESS),
        completed=len(completed),
        abandoned=sum(1 for a in attempts if a.status == ATTEMPT_ABANDONED),
        total_score=total_score,
        average_score=round(total_score / len(completed), 2) if completed else 0.0,
        total_time_spent=sum(a.time_spent or 0 for a in completed),
    )
