"""
Sample and result models — strict validation at the ingestion boundary.

Samples are validated before they touch any bucket, which is what makes
a rejected batch leave the accumulated state untouched. Result models
are frozen and carry camelCase aliases, so any serializer can render
them without further computation:

    points:  {second: {requestRate, errorRate, requestDuration}}
    summary: {totalRequest, totalSuccess, totalError,
              requestRatePerSecond, requestDuration}
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from configs.settings import Settings


class Sample(BaseModel):
    """One timestamped observation of a named metric."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(
        ...,
        description="Seconds since epoch; datetimes and fractional seconds are floored",
        examples=[1700000000],
    )
    metric_name: str = Field(..., alias="metricName", min_length=1, examples=["http_reqs"])
    value: float = Field(..., allow_inf_nan=False)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _to_unix_seconds(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return math.floor(v.timestamp())
        if isinstance(v, float) and math.isfinite(v):
            return math.floor(v)
        return v


class SignalNames(BaseModel):
    """The three metric names the aggregator accumulates. Others are ignored."""

    model_config = ConfigDict(frozen=True)

    request_count: str = "http_reqs"
    failure_count: str = "http_req_failed"
    duration: str = "http_req_duration"

    @classmethod
    def from_settings(cls, cfg: Settings) -> "SignalNames":
        return cls(
            request_count=cfg.request_count_metric,
            failure_count=cfg.failure_count_metric,
            duration=cfg.duration_metric,
        )


class BucketMetric(BaseModel):
    """Derived view of one second of the run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    request_rate: float = Field(..., alias="requestRate")
    error_rate: float = Field(..., alias="errorRate")
    request_duration: float = Field(..., alias="requestDuration")


class Summary(BaseModel):
    """Run-wide aggregate."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_request: int = Field(..., alias="totalRequest")
    total_success: int = Field(..., alias="totalSuccess")
    total_error: int = Field(..., alias="totalError")
    request_rate_per_second: float = Field(..., alias="requestRatePerSecond")
    request_duration: float = Field(..., alias="requestDuration")


class LoadTestResult(BaseModel):
    """Final output of a run: per-second points plus the summary."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    points: Dict[int, BucketMetric]
    summary: Summary

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self, indent: int = 4) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)
