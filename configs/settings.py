"""
Centralized configuration — loaded once at process startup.

Every component (aggregator, reducer, output extension, CLI) reads the
same env vars through this module. Pydantic validates types up front so a
bad percentile or metric name fails before a load test starts, not at
the end of it.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Immutable, validated application settings from environment."""

    # ── Output ──────────────────────────────────────────────
    output_path: str = Field(default="./result.json", description="Result file used when the host passes no path")
    json_indent: int = Field(default=4, ge=0, description="Indentation of the written result JSON")

    # ── Aggregation ─────────────────────────────────────────
    duration_percentile: float = Field(default=0.95, ge=0.0, le=1.0, description="Latency percentile reported per bucket and run-wide")
    bucket_by_sample_timestamp: bool = Field(
        default=False,
        description="Bucket each sample by its own second instead of the first sample of its batch",
    )

    # ── Signal names (k6 built-in metrics) ──────────────────
    request_count_metric: str = Field(default="http_reqs", min_length=1)
    failure_count_metric: str = Field(default="http_req_failed", min_length=1)
    duration_metric: str = Field(default="http_req_duration", min_length=1)

    # ── Logging ─────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Render logs as JSON lines instead of console output")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Singleton accessor — parsed once and cached for the process lifetime.
    Import this wherever you need config:
        from configs.settings import get_settings
        cfg = get_settings()
    Tests that change env vars call get_settings.cache_clear().
    """
    return Settings()
