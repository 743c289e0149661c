"""
Summary Reducer — one pass over all buckets at the end of a run.

Only seconds that received a request-count sample are reported; a
second with latencies or failures but no request count contributes to
neither points nor totals. The run-wide latency is the percentile over
every observation of the run, not an average of per-second percentiles.

Rate sums are truncated toward zero before they are added to the
integer totals, and the request rate divides by (seconds - 1): the
first second is a partial warm-up window.
"""

from __future__ import annotations

from typing import Dict

from services.aggregation_service.bucket_aggregator import AggregatorSnapshot
from services.aggregation_service.errors import DegenerateDurationError, EmptyInputError
from services.aggregation_service.models import BucketMetric, LoadTestResult, Summary
from services.aggregation_service.percentile import percentile


def reduce_buckets(snapshot: AggregatorSnapshot, percentile_rank: float = 0.95) -> LoadTestResult:
    total_request = 0
    total_error = 0
    count_seconds = 0
    points: Dict[int, BucketMetric] = {}

    for bucket in snapshot.buckets:
        if not bucket.has_request_sample:
            continue
        total_request += int(bucket.request_rate_sum)
        total_error += int(bucket.error_rate_sum)
        count_seconds += 1
        try:
            duration = percentile(percentile_rank, bucket.duration_observations)
        except EmptyInputError as exc:
            raise EmptyInputError(
                f"second {bucket.timestamp} has request samples but no durations"
            ) from exc
        points[bucket.timestamp] = BucketMetric(
            request_rate=bucket.request_rate_sum,
            error_rate=bucket.error_rate_sum,
            request_duration=duration,
        )

    if count_seconds <= 1:
        raise DegenerateDurationError(
            f"request rate needs at least 2 seconds with requests, got {count_seconds}"
        )

    summary = Summary(
        total_request=total_request,
        total_success=total_request - total_error,
        total_error=total_error,
        request_rate_per_second=total_request / (count_seconds - 1),
        request_duration=percentile(percentile_rank, snapshot.flat_durations),
    )
    return LoadTestResult(points=points, summary=summary)
