"""
Elapsed-time measurement for the finalize path.

perf_counter_ns is monotonic; wall-clock time can jump on NTP sync, and
reduction of a long run over many seconds of buckets is worth tracking.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Generator

from utils.logger import get_logger

_log = get_logger(__name__)


@contextmanager
def timed(label: str, **context: Any) -> Generator[dict, None, None]:
    """
    Context manager that measures elapsed time in milliseconds.

    Usage:
        with timed("reduce_buckets", buckets=120) as t:
            result = reduce_buckets(snapshot)
        print(t["ms"])

    The dict is populated after the block finishes, also when it
    raised, so callers can report how long a failed reduction took.
    """
    result: dict = {}
    start = time.perf_counter_ns()
    try:
        yield result
    finally:
        elapsed_ns = time.perf_counter_ns() - start
        result["ns"] = elapsed_ns
        result["ms"] = elapsed_ns / 1_000_000
        _log.debug(label, latency_ms=round(result["ms"], 3), **context)
