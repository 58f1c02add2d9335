"""Error taxonomy shared by every classroom service.

Services raise these BEFORE mutating anything, so a caller that catches
one can be sure no partial write is visible.  The API layer maps each
kind to an HTTP status; the ``code`` travels in the response body so
clients can branch without parsing the human-readable message.

    NotFoundError          404   student, class, activity, attempt, enrollment
      NotAMemberError      404   no membership row for (student, class)
    ForbiddenError         403   access denial, role or identity mismatch
    ConflictError          409
      AlreadyMemberError   409   duplicate membership
      AlreadyCompletedError 409  resubmission / restart of a completed attempt
    CapacityExceededError  409   class is full
    InvalidArgumentError   400   empty patch, malformed delta
"""

from __future__ import annotations


class ClassroomError(Exception):
    """Base classroom error."""

    code = "classroom_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(ClassroomError):
    code = "not_found"


class NotAMemberError(NotFoundError):
    code = "not_a_member"

    def __init__(self, message: str = "student is not a member of this class") -> None:
        super().__init__(message)


class ForbiddenError(ClassroomError):
    code = "forbidden"


class ConflictError(ClassroomError):
    code = "conflict"


class AlreadyMemberError(ConflictError):
    code = "already_member"

    def __init__(self, message: str = "student is already a member of this class") -> None:
        super().__init__(message)


class AlreadyCompletedError(ConflictError):
    code = "already_completed"

    def __init__(self, message: str = "activity has already been completed") -> None:
        super().__init__(message)


class CapacityExceededError(ClassroomError):
    code = "capacity_exceeded"

    def __init__(self, message: str = "class is full") -> None:
        super().__init__(message)


class InvalidArgumentError(ClassroomError):
    code = "invalid_argument"
