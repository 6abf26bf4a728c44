"""Tests for familycal.logging_config module."""

import logging
import os
from unittest.mock import patch

import pytest

from familycal.logging_config import (
    CorrelationIdFilter,
    configure_logging,
    get_logging_status,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo level and handler changes made to the root logger."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    filters = {h: list(h.filters) for h in handlers}
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler, original in filters.items():
        handler.filters[:] = original
    root.setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_default_production_mode(self):
        configure_logging()

        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("aiohttp.access").level == logging.WARNING
        assert logging.getLogger("familycal").level == logging.INFO

    def test_debug_mode(self):
        configure_logging(debug_mode=True)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("familycal.domain.notifications").level == logging.DEBUG
        # Third-party loggers should still be suppressed
        assert logging.getLogger("aiohttp.access").level == logging.WARNING

    def test_force_debug_overrides_debug_mode(self):
        configure_logging(debug_mode=True, force_debug=False)

        assert logging.getLogger().level == logging.INFO

    @patch.dict(os.environ, {"FAMILYCAL_DEBUG": "yes"})
    def test_env_debug_override(self):
        configure_logging(debug_mode=False)

        assert logging.getLogger().level == logging.DEBUG

    @patch.dict(os.environ, {"FAMILYCAL_LOG_LEVEL": "WARNING"})
    def test_env_log_level_override(self):
        configure_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_correlation_filter_added_once(self):
        configure_logging()
        configure_logging()

        for handler in logging.getLogger().handlers:
            assert sum(isinstance(f, CorrelationIdFilter) for f in handler.filters) == 1


def test_correlation_filter_outside_request():
    record = logging.LogRecord("familycal", logging.INFO, __file__, 1, "msg", None, None)

    assert CorrelationIdFilter().filter(record) is True
    assert record.request_id == "no-request-id"


def test_get_logging_status():
    configure_logging(debug_mode=True)

    status = get_logging_status()

    assert status["root"] == "DEBUG"
    assert status["familycal"] == "DEBUG"
    assert status["aiohttp.access"] == "WARNING"
