from __future__ import annotations

import logging

import pytest

from classroom.core.logging import _ContainerFormatter, setup_logging
from classroom.middleware.request_context import (
    _RequestContextFilter,
    install_request_context_filter,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(level: int, msg: str, *, pathname: str = "svc.py", lineno: int = 1):
    return logging.LogRecord(
        name="classroom.services.reconciliation",
        level=level,
        pathname=pathname,
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.mark.parametrize(
    ("name", "expected"),
    [("debug", logging.DEBUG), ("warning", logging.WARNING), ("bogus", logging.INFO)],
)
def test_setup_logging_sets_root_level(name: str, expected: int) -> None:
    setup_logging(name)
    assert logging.getLogger().level == expected


def test_setup_logging_replaces_handlers() -> None:
    setup_logging("info")
    setup_logging("info")
    assert len(logging.getLogger().handlers) == 1


@pytest.mark.parametrize("noisy", ["uvicorn", "httpx", "sqlalchemy.engine"])
def test_setup_logging_keeps_library_loggers_at_warning(noisy: str) -> None:
    setup_logging("debug")
    assert logging.getLogger(noisy).level == logging.WARNING


def test_setup_logging_library_loggers_follow_quieter_app_level() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_formatter_omits_location_below_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO, "Membership added"))
    assert "Membership added" in output
    assert "[svc.py:" not in output


def test_formatter_appends_location_for_refusals() -> None:
    record = _record(
        logging.WARNING, "Add membership refused: class is full", lineno=42
    )
    output = _ContainerFormatter().format(record)
    assert "class is full" in output
    assert "[svc.py:42]" in output


def test_request_context_filter_installed_once_per_handler() -> None:
    setup_logging("info")
    install_request_context_filter()
    install_request_context_filter()
    handler = logging.getLogger().handlers[0]
    assert sum(isinstance(f, _RequestContextFilter) for f in handler.filters) == 1


def test_request_context_filter_defaults_outside_a_request() -> None:
    record = _record(logging.INFO, "background")
    assert _RequestContextFilter().filter(record) is True
    assert record.request_id == "-"  # type: ignore[attr-defined]
