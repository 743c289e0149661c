"""
Run lifecycle — start(), ingest() from any number of threads, finalize().

finalize() is the transition barrier: it closes ingestion under the
condition lock, waits until the in-flight counter drops to zero, and
only then reads the buckets. Nothing mutates the aggregator after that
point, and the aggregator is dropped once the result is built.
"""

from __future__ import annotations

import threading
import uuid
from typing import Iterable, Optional

from pydantic import ValidationError

from configs.settings import get_settings
from services.aggregation_service.bucket_aggregator import BucketAggregator, SampleLike
from services.aggregation_service.errors import (
    AggregationError,
    FinalizeCalledTwiceError,
    RunStateError,
)
from services.aggregation_service.models import LoadTestResult, SignalNames
from services.aggregation_service.summary_reducer import reduce_buckets
from utils.logger import get_logger
from utils.timing import timed

_log = get_logger(__name__)


class LoadTestRun:
    """One load-test run's aggregation state and its lifecycle."""

    def __init__(
        self,
        signals: Optional[SignalNames] = None,
        percentile_rank: Optional[float] = None,
        bucket_by_sample_timestamp: Optional[bool] = None,
    ) -> None:
        cfg = get_settings()
        self._signals = signals
        self._percentile_rank = cfg.duration_percentile if percentile_rank is None else percentile_rank
        self._per_sample = bucket_by_sample_timestamp
        self._cond = threading.Condition()
        self._aggregator: Optional[BucketAggregator] = None
        self._in_flight = 0
        self._finalized = False
        self._run_id = ""
        self._log = _log

    @property
    def run_id(self) -> str:
        """Identifier of the current run; changes on every start()."""
        return self._run_id

    @property
    def finalized(self) -> bool:
        return self._finalized

    def start(self) -> None:
        """Reset all state. Also begins a new run after a finalized one."""
        with self._cond:
            if self._in_flight:
                raise RunStateError("cannot restart while batches are being ingested")
            self._aggregator = BucketAggregator(
                signals=self._signals,
                bucket_by_sample_timestamp=self._per_sample,
            )
            self._finalized = False
            self._run_id = uuid.uuid4().hex[:12]
            self._log = _log.bind(run_id=self._run_id)
        self._log.info("run_started", percentile=self._percentile_rank)

    def ingest(self, batch: Iterable[SampleLike]) -> None:
        """Accumulate one batch. Safe to call concurrently."""
        with self._cond:
            if self._finalized:
                raise RunStateError("run is already finalized")
            if self._aggregator is None:
                raise RunStateError("start() has not been called")
            aggregator = self._aggregator
            self._in_flight += 1

        try:
            aggregator.aggregate(batch)
        except (AggregationError, ValidationError) as e:
            self._log.warning("batch_rejected", error=str(e).split("\n", 1)[0])
            raise
        finally:
            with self._cond:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._cond.notify_all()

    def finalize(self) -> LoadTestResult:
        """
        Reduce all buckets into the final result, exactly once.

        Raises FinalizeCalledTwiceError on a second call. Reduction errors
        (EmptyInputError, DegenerateDurationError) propagate and the run
        stays finalized: no partial result is ever produced.
        """
        with self._cond:
            if self._finalized:
                raise FinalizeCalledTwiceError("finalize() already ran for this run")
            if self._aggregator is None:
                raise RunStateError("start() has not been called")
            self._finalized = True
            while self._in_flight:
                self._cond.wait()
            aggregator, self._aggregator = self._aggregator, None

        snapshot = aggregator.snapshot()
        try:
            with timed("reduce_buckets", buckets=len(snapshot.buckets)):
                result = reduce_buckets(snapshot, self._percentile_rank)
        except AggregationError as e:
            self._log.error("run_finalize_failed", error=str(e), **aggregator.stats)
            raise

        self._log.info(
            "run_finalized",
            seconds=len(result.points),
            total_request=result.summary.total_request,
            total_error=result.summary.total_error,
            **aggregator.stats,
        )
        return result
