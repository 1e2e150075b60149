"""Tests for structured logging configuration."""

import json
import logging
from unittest.mock import patch

import pytest
import structlog

from catalog_search.utils.logging import (
    QUIET_LOGGERS,
    configure_logging,
    get_logger,
    tenant_log_context,
)


@pytest.fixture
def restore_logging():
    """Put the root logger and structlog back the way the test found them."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def _formatter_processors(mock_basic_config) -> list:
    [handler] = mock_basic_config.call_args[1]["handlers"]
    return handler.formatter.processors


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_default_params(self) -> None:
        with patch("logging.basicConfig") as mock_basic_config:
            with patch("structlog.configure") as mock_structlog_configure:
                configure_logging()

                call_kwargs = mock_basic_config.call_args[1]
                assert call_kwargs["level"] == logging.INFO
                assert call_kwargs["force"] is True
                [handler] = call_kwargs["handlers"]
                assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
                mock_structlog_configure.assert_called_once()

    @pytest.mark.parametrize(
        ("level", "expected"),
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("INVALID", logging.INFO)],
    )
    def test_level_names(self, level: str, expected: int) -> None:
        with patch("logging.basicConfig") as mock_basic_config:
            with patch("structlog.configure"):
                configure_logging(level=level)
                assert mock_basic_config.call_args[1]["level"] == expected

    def test_client_loggers_quieted(self) -> None:
        """Test chatty client libraries never log below WARNING."""
        with patch("logging.basicConfig"):
            with patch("structlog.configure"):
                configure_logging(level="DEBUG")

        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_json_renderer(self) -> None:
        with patch("logging.basicConfig") as mock_basic_config:
            with patch("structlog.configure"):
                configure_logging(json_format=True)

                processors = _formatter_processors(mock_basic_config)
                assert any("JSONRenderer" in str(type(p)) for p in processors)

    def test_console_renderer(self) -> None:
        with patch("logging.basicConfig") as mock_basic_config:
            with patch("structlog.configure"):
                configure_logging(json_format=False)

                processors = _formatter_processors(mock_basic_config)
                assert any("ConsoleRenderer" in str(type(p)) for p in processors)

    def test_structlog_hands_off_to_formatter(self) -> None:
        with patch("logging.basicConfig"):
            with patch("structlog.configure") as mock_structlog_configure:
                configure_logging()

                processors = mock_structlog_configure.call_args[1]["processors"]
                assert processors[-1] is structlog.stdlib.ProcessorFormatter.wrap_for_formatter


class TestRenderedLines:
    """Tests for the lines actually written to stdout."""

    def test_stdlib_record_carries_tenant(self, capsys, restore_logging) -> None:
        """Test module loggers render as JSON with the bound tenant."""
        configure_logging(level="INFO", json_format=True)

        with tenant_log_context("diku"):
            logging.getLogger("catalog_search.indexing.writer").warning(
                "Index %s does not exist", "instance_diku"
            )

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["tenant_id"] == "diku"
        assert line["event"] == "Index instance_diku does not exist"
        assert line["level"] == "warning"
        assert line["logger"] == "catalog_search.indexing.writer"
        assert "timestamp" in line

    def test_structlog_record_carries_tenant(self, capsys, restore_logging) -> None:
        configure_logging(level="INFO", json_format=True)

        with tenant_log_context("college", job_id="job-1"):
            get_logger("catalog_search.main").info("reindex started", resource="instance")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["tenant_id"] == "college"
        assert line["job_id"] == "job-1"
        assert line["resource"] == "instance"
        assert line["event"] == "reindex started"

    def test_no_tenant_outside_context(self, capsys, restore_logging) -> None:
        configure_logging(level="INFO", json_format=True)
        structlog.contextvars.clear_contextvars()

        logging.getLogger("catalog_search.indexing.consumer").info("Consumer task cancelled")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert "tenant_id" not in line


class TestTenantLogContext:
    def test_get_logger(self) -> None:
        assert get_logger("catalog_search.test") is not None

    def test_bound_only_inside_block(self) -> None:
        structlog.contextvars.clear_contextvars()
        with tenant_log_context("diku", job_id="job-1"):
            assert structlog.contextvars.get_contextvars() == {
                "tenant_id": "diku",
                "job_id": "job-1",
            }
        assert structlog.contextvars.get_contextvars() == {}

    def test_nested_tenants_restore_outer(self) -> None:
        structlog.contextvars.clear_contextvars()
        with tenant_log_context("consortium"):
            with tenant_log_context("college"):
                assert structlog.contextvars.get_contextvars()["tenant_id"] == "college"
            assert structlog.contextvars.get_contextvars()["tenant_id"] == "consortium"
