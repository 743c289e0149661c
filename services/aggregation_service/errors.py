"""
Error taxonomy for the aggregation core.

Every error is an AggregationError so a host can fail the test run with
a single except clause, and each also subclasses the builtin it most
resembles so generic handlers keep working.
"""

from __future__ import annotations


class AggregationError(Exception):
    """Base class for all aggregation failures."""


class EmptyBatchError(AggregationError, ValueError):
    """ingest() was called with a batch holding no samples."""


class EmptyInputError(AggregationError, ValueError):
    """A percentile was requested over zero observations."""


class DegenerateDurationError(AggregationError, ArithmeticError):
    """The run is too short to derive a per-second request rate."""


class FinalizeCalledTwiceError(AggregationError, RuntimeError):
    """finalize() already ran for this run."""


class RunStateError(AggregationError, RuntimeError):
    """Lifecycle misuse: ingest before start() or after finalize()."""
