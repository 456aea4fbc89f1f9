"""
Structured logging for RoboCell.

Modules log snake_case events with keyword context through structlog
(https://www.structlog.org/). Work on one program can be tagged with
:func:`program_context`, so that events emitted while checking, sampling
or animating it carry the program name.

Usage::

    from robocell.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG")
    logger = get_logger(__name__)
    logger.info("program_checked", targets=42, diagnostics=0)
"""

import logging
import sys
from contextlib import AbstractContextManager
from typing import Optional

import structlog

from robocell.core.exceptions import ConfigurationError

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Third-party loggers that are chatty below WARNING
NOISY_LIBRARIES = ("trimesh",)


def _renderer(json_output: bool) -> structlog.types.Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Route structlog events through the standard library root logger.

    Args:
        level: Minimum level, one of :data:`LEVELS`
        json_output: Render JSON lines instead of colored console lines
        log_file: Also write events to this file

    Raises:
        ConfigurationError: If ``level`` is not a known level name
    """
    name = level.upper()
    if name not in LEVELS:
        raise ConfigurationError(
            f"Unknown log level '{level}'", details={"levels": list(LEVELS)}
        )
    log_level = getattr(logging, name)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)

    for library in NOISY_LIBRARIES:
        logging.getLogger(library).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_output),
        ],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def program_context(name: str) -> AbstractContextManager:
    """Tag every event logged inside the ``with`` block with ``program=name``."""
    return structlog.contextvars.bound_contextvars(program=name)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)
