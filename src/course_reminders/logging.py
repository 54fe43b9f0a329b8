"""structlog setup for the reminder engine.

The cron job logs JSON (one object per event, Chinese text kept readable);
manual runs log to the console. Modules call get_logger(__name__) and log
snake_case event names with keyword context. A dispatch cycle wraps its work
in bind_cycle()/clear_cycle() so every event carries the cycle_id.
"""

import logging
import sys

import structlog


def _renderer(json_output: bool) -> list:
    if json_output:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog and route stdlib loggers (requests, urllib3) to stdout.

    Args:
        json_output: JSON lines for production, console format otherwise.
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *_renderer(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers = [logging.StreamHandler(sys.stdout)]
    root.setLevel(level)


def bind_cycle(cycle_id: str) -> None:
    """Attach *cycle_id* to every event logged until clear_cycle()."""
    structlog.contextvars.bind_contextvars(cycle_id=cycle_id)


def clear_cycle() -> None:
    structlog.contextvars.unbind_contextvars("cycle_id")


def get_logger(name: str) -> structlog.BoundLogger:
    """Logger bound with the calling module's name."""
    return structlog.get_logger(name)
