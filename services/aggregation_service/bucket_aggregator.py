"""
Bucket Aggregator — folds sample batches into per-second buckets.

Architecture decisions:
  1. One _Bucket per integer second, created lazily, never removed
     while the run lives.
  2. Each bucket owns a lock. Updates to the same second are atomic
     with respect to each other; different seconds proceed in parallel.
     The bucket map itself is guarded by a short-lived creation lock.
  3. The flat duration log (every latency of the run, used for the
     run-wide percentile) has its own lock. Lock order is always
     bucket -> flat log, never the reverse.
  4. A batch is fully validated and planned before the first mutation,
     so a bad batch is rejected without touching prior state.
  5. By default every sample in a batch lands in the second of the
     batch's first sample. A k6 sample container holds the samples of
     one request, which share a timestamp. Per-sample bucketing is
     available through Settings.bucket_by_sample_timestamp.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from configs.settings import get_settings
from services.aggregation_service.errors import EmptyBatchError
from services.aggregation_service.models import Sample, SignalNames
from utils.logger import get_logger

_log = get_logger(__name__)

SampleLike = Union[Sample, Mapping[str, Any]]


@dataclass
class _Bucket:
    request_rate_sum: float = 0.0
    error_rate_sum: float = 0.0
    has_request_sample: bool = False
    duration_observations: List[float] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


@dataclass(frozen=True)
class BucketState:
    """Read-only copy of one bucket, handed to the summary reducer."""

    timestamp: int
    request_rate_sum: float
    error_rate_sum: float
    has_request_sample: bool
    duration_observations: Tuple[float, ...]


@dataclass(frozen=True)
class AggregatorSnapshot:
    buckets: Tuple[BucketState, ...]
    flat_durations: Tuple[float, ...]


@dataclass
class _Delta:
    request_rate: float = 0.0
    error_rate: float = 0.0
    has_request_sample: bool = False
    durations: List[float] = field(default_factory=list)


class BucketAggregator:
    """
    Per-run accumulation state: buckets keyed by second plus the
    flat duration log. Instances are not reused across runs.
    """

    def __init__(
        self,
        signals: Optional[SignalNames] = None,
        bucket_by_sample_timestamp: Optional[bool] = None,
    ) -> None:
        cfg = get_settings()
        self._signals = signals or SignalNames.from_settings(cfg)
        self._per_sample = (
            cfg.bucket_by_sample_timestamp
            if bucket_by_sample_timestamp is None
            else bucket_by_sample_timestamp
        )
        self._buckets: Dict[int, _Bucket] = {}
        self._buckets_lock = threading.Lock()
        self._flat_durations: List[float] = []
        self._flat_lock = threading.Lock()
        self._ignored = 0

    @property
    def signals(self) -> SignalNames:
        return self._signals

    def aggregate(self, batch: Iterable[SampleLike]) -> None:
        """
        Apply one batch of samples. Raises EmptyBatchError on an empty
        batch and pydantic's ValidationError on a malformed sample; in
        both cases nothing has been mutated.
        """
        samples = [self._coerce(s) for s in batch]
        if not samples:
            raise EmptyBatchError("sample batch is empty")

        for ts, delta in self._plan(samples).items():
            self._apply(ts, delta)

    def _coerce(self, sample: SampleLike) -> Sample:
        if isinstance(sample, Sample):
            return sample
        try:
            return Sample.model_validate(sample)
        except ValidationError:
            _log.warning("sample_rejected", sample=repr(sample)[:200])
            raise

    def _plan(self, samples: List[Sample]) -> Dict[int, _Delta]:
        first_ts = samples[0].timestamp
        deltas: Dict[int, _Delta] = {}
        ignored = 0

        for sample in samples:
            ts = sample.timestamp if self._per_sample else first_ts
            delta = deltas.setdefault(ts, _Delta())
            name = sample.metric_name
            if name == self._signals.request_count:
                delta.request_rate += sample.value
                delta.has_request_sample = True
            elif name == self._signals.failure_count:
                delta.error_rate += sample.value
            elif name == self._signals.duration:
                delta.durations.append(sample.value)
            else:
                ignored += 1

        if ignored:
            with self._buckets_lock:
                self._ignored += ignored
            _log.debug("samples_ignored", count=ignored, bucket=first_ts)
        return deltas

    def _bucket(self, ts: int) -> _Bucket:
        bucket = self._buckets.get(ts)
        if bucket is not None:
            return bucket
        with self._buckets_lock:
            return self._buckets.setdefault(ts, _Bucket())

    def _apply(self, ts: int, delta: _Delta) -> None:
        bucket = self._bucket(ts)
        with bucket.lock:
            bucket.request_rate_sum += delta.request_rate
            bucket.error_rate_sum += delta.error_rate
            bucket.has_request_sample = bucket.has_request_sample or delta.has_request_sample
            if delta.durations:
                bucket.duration_observations.extend(delta.durations)
                with self._flat_lock:
                    self._flat_durations.extend(delta.durations)

    def snapshot(self) -> AggregatorSnapshot:
        """
        Copy current state for reduction. Consistent only once ingestion
        has stopped; LoadTestRun.finalize() guarantees that.
        """
        with self._buckets_lock:
            items = sorted(self._buckets.items())

        states = []
        for ts, bucket in items:
            with bucket.lock:
                states.append(
                    BucketState(
                        timestamp=ts,
                        request_rate_sum=bucket.request_rate_sum,
                        error_rate_sum=bucket.error_rate_sum,
                        has_request_sample=bucket.has_request_sample,
                        duration_observations=tuple(bucket.duration_observations),
                    )
                )

        with self._flat_lock:
            flat = tuple(self._flat_durations)
        return AggregatorSnapshot(buckets=tuple(states), flat_durations=flat)

    @property
    def stats(self) -> Dict[str, int]:
        with self._flat_lock:
            durations = len(self._flat_durations)
        return {
            "buckets": len(self._buckets),
            "durations": durations,
            "ignored_samples": self._ignored,
        }
