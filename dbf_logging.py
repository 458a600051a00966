"""Structured logging configuration for the DBF engine.

Uses structlog's ProcessorFormatter so structlog events and plain stdlib
records share one output format. Library modules only call get_logger();
attaching a handler is left to applications (the CLI calls
configure_logging()).
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import Processor

from dbf_settings import get_settings


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _event_processors() -> List[Processor]:
    return (
        [structlog.stdlib.filter_by_level]
        + _shared_processors()
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter]
    )


def _configure_structlog() -> None:
    structlog.configure(
        processors=_event_processors(),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Route structlog through a stdlib handler on stderr.

    Defaults come from DbfSettings (DBF_LOG_LEVEL / DBF_LOG_FORMAT).
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    if fmt == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    _configure_structlog()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: Optional[str] = None, **initial_values: Any) -> Any:
    """Return a structlog logger that emits through the stdlib logger `name`.

    The logger carries its own processor chain, so the global structlog
    configuration of the host application is left untouched. Events reach
    whatever handlers stdlib logging has; configure_logging() installs one
    that renders them.
    """
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=_event_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        **initial_values,
    )
