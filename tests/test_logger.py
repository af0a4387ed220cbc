"""
PURPOSE: Tests for structured logging setup.

Checks that loggers tag every event with the service and emitting module,
including loggers created at import time before logging is configured.
"""

import pytest
import structlog

from momentum_sync.utils.logger import SERVICE_NAME, get_logger, setup_logging

module_logger = get_logger("momentum_sync.sync.reconciler")


@pytest.fixture
def restore_structlog():
    yield
    structlog.reset_defaults()


class TestGetLogger:
    """Test bound context on module loggers."""

    def test_events_carry_service_and_module(self):
        with structlog.testing.capture_logs() as captured:
            module_logger.info("sheet_row_appended", ticker="AAPL", sheet="Sheet2")

        assert captured == [
            {
                "event": "sheet_row_appended",
                "log_level": "info",
                "service": SERVICE_NAME,
                "module": "momentum_sync.sync.reconciler",
                "ticker": "AAPL",
                "sheet": "Sheet2",
            }
        ]

    def test_service_name(self):
        assert SERVICE_NAME == "momentum-sync"


class TestSetupLogging:
    """Test level handling."""

    def test_unknown_level_falls_back_to_info(self, restore_structlog):
        setup_logging("chatty")
        logger = get_logger("tests.logger")

        with structlog.testing.capture_logs() as captured:
            logger.debug("hidden")
            logger.info("visible")

        assert [entry["event"] for entry in captured] == ["visible"]
