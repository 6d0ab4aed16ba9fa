"""
Test suite for observability helpers.

Tests job-scoped log formatting, safe value rendering and logging setup.

System role: Verification of logging utilities
"""

import logging
from datetime import datetime, timezone

import pytest

from exam_tracker.configs import get_settings
from exam_tracker.models.job import JobState
from exam_tracker.observability import configure_logging, get_logger
from exam_tracker.observability.log_utils import log_job_event, log_job_exception, safe_log_value


class TestSafeLogValue:
    """Test suite for safe_log_value()."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, "None"),
            (JobState.ASSESSING, "assessing"),
            (datetime(2025, 1, 1, tzinfo=timezone.utc), "2025-01-01T00:00:00+00:00"),
            ([1, 2, 3], "list(3 items)"),
            ({"a": 1}, "dict(1 keys)"),
            (42, "42"),
        ],
    )
    def test_renders_common_types(self, value, expected: str) -> None:
        assert safe_log_value(value) == expected

    def test_truncates_long_values(self) -> None:
        rendered = safe_log_value("x" * 50, max_length=10)

        assert rendered == "x" * 10 + "..."


class TestJobLogging:
    """Test suite for log_job_event() and log_job_exception()."""

    def test_event_includes_job_and_context(self, caplog) -> None:
        # Arrange
        logger = get_logger("tests.job_logging")

        # Act
        with caplog.at_level(logging.INFO, logger="tests.job_logging"):
            log_job_event(logger, logging.INFO, "State changed", "job-1", state=JobState.COMPLETED)

        # Assert
        record = caplog.records[0]
        assert record.getMessage() == "[job=job-1] State changed (state=completed)"
        assert record.job_id == "job-1"
        assert record.state == "completed"

    def test_event_below_level_is_dropped(self, caplog) -> None:
        logger = get_logger("tests.job_logging")

        with caplog.at_level(logging.WARNING, logger="tests.job_logging"):
            log_job_event(logger, logging.DEBUG, "Poll scheduled", "job-1", delay=3.0)

        assert caplog.records == []

    def test_exception_carries_error_type(self, caplog) -> None:
        # Arrange
        logger = get_logger("tests.job_logging")

        # Act
        with caplog.at_level(logging.ERROR, logger="tests.job_logging"):
            try:
                raise RuntimeError("callback exploded")
            except RuntimeError as e:
                log_job_exception(logger, "Update callback raised", "job-1", e)

        # Assert
        record = caplog.records[0]
        assert record.levelno == logging.ERROR
        assert record.error_type == "RuntimeError"
        assert record.error_msg == "callback exploded"
        assert record.exc_info is not None


class TestConfigureLogging:
    """Test suite for configure_logging()."""

    def test_sets_root_level_and_quiets_http_transport(self) -> None:
        # Arrange
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level

        try:
            # Act
            configure_logging("debug")

            # Assert
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_defaults_to_configured_log_level(self, monkeypatch) -> None:
        # Arrange
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        monkeypatch.setenv("LOG_LEVEL", "warning")
        get_settings.cache_clear()

        try:
            # Act
            configure_logging()

            # Assert
            assert root.level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
            get_settings.cache_clear()
