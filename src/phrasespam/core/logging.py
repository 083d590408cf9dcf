"""Structured logging for phrasespam.

structlog renders every entry to stderr, leaving stdout to scores and
dumps. Each CLI command binds a run_id through structlog's contextvars,
so all entries from one invocation share it.

Usage:
    from phrasespam.core.logging import bind_run_id, get_logger

    logger = get_logger(__name__)

    bind_run_id(uuid.uuid4().hex[:12])
    logger.info("Message learned", phrases=42, is_spam=True)
"""

import logging
import sys

import structlog

RUN_ID_KEY = "run_id"


def bind_run_id(run_id: str | None) -> None:
    """Tag subsequent log entries in this context with run_id (None clears it)."""
    if run_id is None:
        structlog.contextvars.unbind_contextvars(RUN_ID_KEY)
    else:
        structlog.contextvars.bind_contextvars(**{RUN_ID_KEY: run_id})


def get_run_id() -> str | None:
    return structlog.contextvars.get_contextvars().get(RUN_ID_KEY)


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog through stdlib logging on stderr.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines when True, colored console output otherwise
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)
