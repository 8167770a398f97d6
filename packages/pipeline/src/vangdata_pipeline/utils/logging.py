"""
utils/logging.py — structlog configuration for backfill workers and the scheduler.

JSON or human-readable console output is selected by settings.log_format.
configure_logging() is called once at process startup (the CLI and the API
app factory both do it); later calls are no-ops unless force=True.

Executor tasks bind job context through contextvars so every line emitted
while a job runs carries its job_id and source_id, including lines logged
by the sources and the loader.

Usage:
    import structlog
    from vangdata_pipeline.utils.logging import configure_logging, job_context

    configure_logging()
    log = structlog.get_logger(__name__)

    with job_context(job_id=job.id, source_id=job.source_id):
        log.info("chunk_processed", day="2025-01-15", saved=3)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from vangdata_shared.config import settings

_configured = False


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    *,
    force: bool = False,
) -> None:
    """
    Configure structlog for the current process.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
        force:      Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return

    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = log_format or settings.log_format

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


@contextmanager
def job_context(**values: Any) -> Iterator[None]:
    """Bind values to every log line emitted inside the block (task-local)."""
    tokens = structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
