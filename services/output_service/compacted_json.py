"""
compacted-json output — one JSON document per run instead of one line
per sample.

Lifecycle, driven by the host test runner:
  start()              create the result file, start a fresh run
  add_metric_samples() one call per flush, each container one batch
  stop()               finalize, write the indented JSON, close the file

The file is created at start() so a bad path fails the test before any
load is generated rather than after it.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, Iterable, Optional

from configs.settings import get_settings
from services.aggregation_service import LoadTestResult, LoadTestRun
from services.aggregation_service.bucket_aggregator import SampleLike
from services.output_service.registry import OutputParams, register_extension
from utils.logger import get_logger

_log = get_logger(__name__)

EXTENSION_NAME = "compacted-json"


class CompactedJsonOutput:
    """Aggregates samples in memory and writes the run summary at stop()."""

    def __init__(self, params: OutputParams, run: Optional[LoadTestRun] = None) -> None:
        cfg = get_settings()
        self._path = Path(params.config_argument or cfg.output_path)
        self._indent = cfg.json_indent
        self._run = run or LoadTestRun()
        self._file: Optional[IO[str]] = None
        self._result: Optional[LoadTestResult] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def result(self) -> Optional[LoadTestResult]:
        """The result written by the last successful stop()."""
        return self._result

    def description(self) -> str:
        return f"{EXTENSION_NAME} ({self._path}): compacted JSON summary of the load test"

    def start(self) -> None:
        self.close()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("w", encoding="utf-8")
        self._result = None
        try:
            self._run.start()
        except Exception:
            self.close()
            raise
        _log.info("output_started", extension=EXTENSION_NAME, path=str(self._path))

    def add_metric_samples(self, containers: Iterable[Iterable[SampleLike]]) -> None:
        for container in containers:
            self._run.ingest(container)

    def stop(self) -> None:
        if self._file is None:
            raise RuntimeError("stop() called before start()")
        try:
            result = self._run.finalize()
            self._file.write(result.to_json(indent=self._indent))
        finally:
            self.close()

        self._result = result
        _log.info(
            "result_written",
            path=str(self._path),
            seconds=len(result.points),
            total_request=result.summary.total_request,
        )

    def close(self) -> None:
        """Release the result file. Safe to call at any point, any number of times."""
        if self._file is not None:
            self._file.close()
            self._file = None


register_extension(EXTENSION_NAME, CompactedJsonOutput)
