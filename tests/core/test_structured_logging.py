"""JSON log lines must stay machine-parseable and carry the domain ids.

Refusal warnings are searched by student_id / class_id in the log
pipeline; if those keys stop reaching the top level, the search silently
returns nothing.
"""

from __future__ import annotations

import json
import logging
import sys

import pytest

from classroom.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str, *args, level: int = logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="classroom.services.attempts",
        level=level,
        pathname="attempts.py",
        lineno=7,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("Attempt submitted score=%d", 90)))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "classroom.services.attempts"
    assert parsed["message"] == "Attempt submitted score=90"
    assert "timestamp" in parsed


def test_json_formatter_lifts_domain_ids() -> None:
    record = _record("Resubmission rejected", level=logging.WARNING)
    record.student_id = "s-1"  # type: ignore[attr-defined]
    record.activity_id = "a-1"  # type: ignore[attr-defined]
    record.error_code = "already_completed"  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["student_id"] == "s-1"
    assert parsed["activity_id"] == "a-1"
    assert parsed["error_code"] == "already_completed"
    assert "class_id" not in parsed


def test_json_formatter_lifts_request_context() -> None:
    record = _record("GET /health -> 200 (1.0ms)")
    record.request_id = "abc-123"  # type: ignore[attr-defined]
    record.path = "/health"  # type: ignore[attr-defined]
    record.duration_ms = 1.0  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["path"] == "/health"
    assert parsed["duration_ms"] == 1.0


def test_json_formatter_ignores_unknown_extras() -> None:
    record = _record("Attempt updated")
    record.answers = {"q1": "secret"}  # type: ignore[attr-defined]
    assert "answers" not in json.loads(_JsonFormatter().format(record))


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise RuntimeError("card failed")
    except RuntimeError:
        record = _record(
            "Dashboard card degraded to defaults",
            level=logging.WARNING,
            exc_info=sys.exc_info(),
        )
        output = _JsonFormatter().format(record)

    assert "RuntimeError: card failed" in json.loads(output)["exception"]


def test_container_formatter_is_plain_text() -> None:
    output = _ContainerFormatter().format(_record("Membership removed"))
    assert "INFO" in output
    assert "classroom.services.attempts" in output
    with pytest.raises(json.JSONDecodeError):
        json.loads(output)
