"""Structured logging for Stagehand, built on structlog.

Every module logs through ``get_logger(__name__)`` with a dotted event name
and keyword fields:

    logger.info("enrollment.created", class_id=class_id, student_id=student_id)

Output goes to stdout as JSON (LOG_FORMAT=json) or as colored console lines.
Fields bound with ``bind_contextvars`` or ``tenant_context`` are added to
every line emitted in the same task, which is how tenant ids reach the
repository-level ``db.query.*`` events.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import Processor

from core.config import Settings, get_settings

# stdlib loggers that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "alembic.runtime")


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(), exception_formatter=structlog.dev.plain_traceback
    )


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog and stdlib records through one stdout handler.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.
    """
    settings = settings or get_settings()

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                _renderer(settings.log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(_resolve_level(settings.log_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


def bind_contextvars(**fields: Any) -> None:
    """Attach fields to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_contextvars() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def tenant_context(organization_id: str, **fields: Any) -> Iterator[None]:
    """Bind ``organization_id`` (plus any extra fields) for the block.

    Example:
        with tenant_context(org_id, command="dashboard"):
            data = await get_dashboard_data(db, org_id)
    """
    with structlog.contextvars.bound_contextvars(organization_id=organization_id, **fields):
        yield
