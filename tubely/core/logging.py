from __future__ import annotations

import logging
from typing import Any

import structlog


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(format="%(message)s", level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        # stdlib handlers write to stderr; stdout stays clean for CLI output
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # module-level loggers must pick up reconfiguration by create_app and the CLI
        cache_logger_on_first_use=False,
    )


def level_from_name(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def get_logger(**initial_values: Any) -> Any:
    """Return a lazy logger; configuration is resolved when it is first used, not at import."""
    return structlog.get_logger(**initial_values)


__all__ = ["configure_logging", "get_logger", "level_from_name"]
