from __future__ import annotations

import logging

import pytest

from csrf_sync.core.logging import CsrfContextFilter, configure_logging, guard_log_level


@pytest.mark.parametrize(
    ("host_level", "expected"),
    [("DEBUG", "DEBUG"), ("info", "INFO"), ("WARNING", "WARNING"), ("ERROR", "WARNING"), ("CRITICAL", "WARNING")],
)
def test_guard_level_never_hides_rejections(host_level: str, expected: str) -> None:
    assert guard_log_level(host_level) == expected


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError):
        guard_log_level("LOUD")


def test_configure_logging_leaves_root_alone() -> None:
    root = logging.getLogger()
    handlers_before = list(root.handlers)
    level_before = root.level

    configure_logging("ERROR")

    assert root.handlers == handlers_before
    assert root.level == level_before
    guard_logger = logging.getLogger("csrf_sync")
    assert guard_logger.level == logging.WARNING
    assert guard_logger.isEnabledFor(logging.WARNING)
    assert len(guard_logger.handlers) == 1


def test_context_filter_renders_guard_fields() -> None:
    record = logging.LogRecord("csrf_sync.csrf", logging.WARNING, __file__, 1, "csrf_token_rejected", None, None)
    record.method = "POST"
    record.path = "/form"
    record.reason = "mismatch"

    assert CsrfContextFilter().filter(record) is True
    assert record.csrf_context == "method=POST path=/form reason=mismatch"


def test_context_filter_without_fields() -> None:
    record = logging.LogRecord("csrf_sync.csrf", logging.DEBUG, __file__, 1, "csrf_token_revoked", None, None)

    CsrfContextFilter().filter(record)

    assert record.csrf_context == ""
