"""
Structured logging for load-test runs.

Every event carries the service name, and anything bound with
run_context() (run id, extension, input file) for the duration of a
replay. LoadTestRun binds its own run_id on a logger instance instead,
because ingest() is called from producer threads that do not share the
caller's contextvars.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Generator

import structlog
from structlog.types import Processor

SERVICE_NAME = "k6-compacted-json"


def _service_adder(service: str) -> Processor:
    def add_service(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def setup_logging(*, level: str = "INFO", json_output: bool = False, service: str = SERVICE_NAME) -> None:
    """
    Configure structlog on top of stdlib logging. Call once per process;
    calling again (tests, repeated CLI invocations) replaces the handler
    and drops any leftover run context.
    """
    structlog.contextvars.clear_contextvars()

    processors: list = [
        structlog.contextvars.merge_contextvars,
        _service_adder(service),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


@contextmanager
def run_context(**values: Any) -> Generator[None, None, None]:
    """Bind values to every event logged in this context, then unbind them."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: str, **initial: Any) -> structlog.stdlib.BoundLogger:
    """Named logger, optionally pre-bound with initial values."""
    log = structlog.get_logger(name)
    return log.bind(**initial) if initial else log
