"""Map the classroom error taxonomy onto HTTP responses.

Registered once on the app (see main.py), so routers call the services
directly and let ClassroomError propagate.  Bodies carry the
human-readable message and a stable machine code:

    {"detail": "class is full", "code": "capacity_exceeded"}

No stack traces or internal identifiers leave the process.
"""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from classroom.core.errors import (
    CapacityExceededError,
    ClassroomError,
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

# Checked in order; subclasses inherit their parent's status.
_STATUS_BY_ERROR: tuple[tuple[type[ClassroomError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (CapacityExceededError, status.HTTP_409_CONFLICT),
    (InvalidArgumentError, status.HTTP_400_BAD_REQUEST),
)


def status_for(exc: ClassroomError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def classroom_error_handler(request: Request, exc: ClassroomError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "%s %s refused: %s",
        request.method,
        request.url.path,
        exc.code,
        extra={"status_code": status_code, "error_code": exc.code},
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
    )
