"""
PURPOSE: Structured logging for the momentum-sync webhook service.

Every record is one JSON line tagged with the service name and the emitting
module. Event names are snake_case and carry their context as keys, e.g.
    webhook_alert_received   ticker, indicator, multi_signal
    state_merged             ticker, date_updated, transitioned
    signal_transition        ticker, indicator, signal
    sheet_row_appended       ticker, sheet
    sheet_reconcile_failed   ticker, error
so a ticker's path from webhook to sheet row can be followed by filtering on
`ticker`.
"""

import logging

import structlog

SERVICE_NAME = "momentum-sync"


def setup_logging(log_level: str = "INFO") -> None:
    """
    PURPOSE: Configure structlog for JSON lines with timestamp and level.

    CALLED BY: main.on_startup()

    Args:
        log_level: LOG_LEVEL setting; unknown names fall back to INFO.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(module_name: str) -> structlog.BoundLogger:
    """
    PURPOSE: Return a logger bound to the service name and the calling module.

    The context is passed as initial values rather than bound, so module-level
    loggers pick up the configuration from setup_logging() at first use.

    Args:
        module_name: Usually __name__ of the caller.
    """
    return structlog.get_logger(service=SERVICE_NAME, module=module_name)
