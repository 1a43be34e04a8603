"""Structured logging setup (structlog on top of the stdlib logging module)."""
import logging
import sys

import structlog

_configured = False

def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structlog and the root stdlib logger.

    Called once by each entry point (API app, Celery worker). Safe to call
    again; later calls only adjust the level.
    """
    global _configured

    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger().setLevel(log_level)

    if _configured:
        return

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True

def get_logger(name: str):
    """Return a structlog logger bound to a module name."""
    return structlog.get_logger(name)
