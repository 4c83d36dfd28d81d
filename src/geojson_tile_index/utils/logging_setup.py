"""
Structured logging setup.

Configures the standard library root logger and structlog once, with JSON
output for deployed workers and a console renderer for local use.
"""

import logging
import sys
from typing import Optional

import structlog


_configured = False


def configure_logging(level: str = "INFO", log_format: str = "json", force: bool = False) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_format: ``json`` or ``console``
        force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: Optional[str] = None, **context) -> structlog.stdlib.BoundLogger:
    """Return a bound logger, configuring logging with defaults on first use."""
    configure_logging()
    return structlog.get_logger(name, **context)
