from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from classroom.api.attempts import router as attempts_router
from classroom.api.enrollments import router as enrollments_router
from classroom.api.errors import classroom_error_handler
from classroom.api.health import router as health_router
from classroom.api.learn import router as learn_router
from classroom.api.metrics_endpoint import router as metrics_router
from classroom.api.progress import router as progress_router
from classroom.core.config import SETTINGS
from classroom.core.errors import ClassroomError
from classroom.core.logging import setup_logging
from classroom.db.engine import lifespan_db
from classroom.db.redis import lifespan_redis
from classroom.middleware.metrics import MetricsMiddleware
from classroom.middleware.request_context import (
    RequestContextMiddleware,
    install_request_context_filter,
)
from classroom.services.container import build_services

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order (LIFO).
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="classroom-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Services are built once per process; tests swap in an in-memory
# container through app.state.services.
app.state.services = build_services(SETTINGS)

app.add_exception_handler(ClassroomError, classroom_error_handler)  # type: ignore[arg-type]

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) -> Metrics -> route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(enrollments_router)
app.include_router(attempts_router)
app.include_router(progress_router)
app.include_router(learn_router)

logger.info(
    "classroom-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
