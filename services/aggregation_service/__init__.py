"""
Aggregation Service Package — per-second buckets, percentiles, run summary.
"""

from services.aggregation_service.bucket_aggregator import BucketAggregator
from services.aggregation_service.errors import (
    AggregationError,
    DegenerateDurationError,
    EmptyBatchError,
    EmptyInputError,
    FinalizeCalledTwiceError,
    RunStateError,
)
from services.aggregation_service.load_test_run import LoadTestRun
from services.aggregation_service.models import (
    BucketMetric,
    LoadTestResult,
    Sample,
    SignalNames,
    Summary,
)
from services.aggregation_service.percentile import percentile
from services.aggregation_service.summary_reducer import reduce_buckets

__all__ = [
    "AggregationError",
    "BucketAggregator",
    "BucketMetric",
    "DegenerateDurationError",
    "EmptyBatchError",
    "EmptyInputError",
    "FinalizeCalledTwiceError",
    "LoadTestResult",
    "LoadTestRun",
    "RunStateError",
    "Sample",
    "SignalNames",
    "Summary",
    "percentile",
    "reduce_buckets",
]
