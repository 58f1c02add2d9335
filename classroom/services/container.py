"""Explicit wiring of the enrollment engine.

Each component receives its collaborators through its constructor; there
are no module-level service singletons.  ``build_services`` picks the
PostgreSQL or in-memory store and the Redis or in-memory cache from
configuration, the same way db/engine.py and db/redis.py decide at
import time.  The FastAPI app keeps the result on ``app.state.services``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from classroom.core.config import Settings
from classroom.repos.store import InMemoryStore, Store
from classroom.services.access_control import AccessControlResolver
from classroom.services.attempts import AttemptLifecycleManager
from classroom.services.cache import (
    CacheService,
    InMemoryCacheService,
    RedisCacheService,
)
from classroom.services.progress import ProgressAggregator
from classroom.services.reconciliation import Clock, ReconciliationService, utc_now

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: Store
    cache: CacheService
    reconciliation: ReconciliationService
    access: AccessControlResolver
    attempts: AttemptLifecycleManager
    progress: ProgressAggregator


def wire(
    store: Store,
    cache: CacheService,
    *,
    cache_ttl: int,
    clock: Clock = utc_now,
) -> Services:
    reconciliation = ReconciliationService(store, cache, clock=clock)
    access = AccessControlResolver(store)
    return Services(
        store=store,
        cache=cache,
        reconciliation=reconciliation,
        access=access,
        attempts=AttemptLifecycleManager(store, access, reconciliation, clock=clock),
        progress=ProgressAggregator(store, cache, cache_ttl=cache_ttl),
    )


def build_in_memory_services(
    *,
    store: InMemoryStore | None = None,
    cache_ttl: int = 300,
    clock: Clock = utc_now,
) -> Services:
    return wire(
        store if store is not None else InMemoryStore(),
        InMemoryCacheService(),
        cache_ttl=cache_ttl,
        clock=clock,
    )


def build_services(settings: Settings) -> Services:
    from classroom.db.engine import async_session_factory
    from classroom.db.redis import redis_pool

    if async_session_factory is not None:
        from classroom.repos.pg_store import PgStore

        store: Store = PgStore(async_session_factory)
    else:
        store = InMemoryStore()

    cache: CacheService
    if redis_pool is not None:
        cache = RedisCacheService(redis_pool)
    else:
        cache = InMemoryCacheService()

    logger.info(
        "Services wired store=%s cache=%s",
        type(store).__name__,
        type(cache).__name__,
    )
    return wire(store, cache, cache_ttl=settings.progress_cache_ttl)
