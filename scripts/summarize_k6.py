"""
Replay a k6 `--out json` file through the compacted-json output.

k6 writes one JSON object per line; only "Point" lines carry samples:
    {"type": "Point", "metric": "http_reqs",
     "data": {"time": "2024-05-01T10:00:00.123Z", "value": 1, "tags": {...}}}

Consecutive points with the same `data.time` were emitted by the same
request, so they are replayed as one sample container, which is how the
live extension receives them.

Usage:
    python -m scripts.summarize_k6 results.ndjson --out reports/result.json
"""

from __future__ import annotations

import argparse
import json
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pydantic import ValidationError

from configs.settings import get_settings
from services.aggregation_service import AggregationError, Sample
from services.output_service import OutputParams, create_output
from utils.logger import get_logger, run_context, setup_logging

_log = get_logger(__name__)


_FRACTION = re.compile(r"\.\d+")


def _parse_time(raw: str) -> datetime:
    # k6 writes RFC 3339 with up to nanosecond precision; buckets only need the second
    return datetime.fromisoformat(_FRACTION.sub("", raw, count=1).replace("Z", "+00:00"))


def read_containers(path: Path) -> Iterator[List[Sample]]:
    """Yield sample containers from a k6 NDJSON file, skipping junk lines."""
    container: List[Sample] = []
    current_time: Optional[str] = None
    skipped = 0

    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                skipped += 1
                continue
            if event.get("type") != "Point":
                continue

            data = event.get("data") or {}
            raw_time = data.get("time")
            try:
                sample = Sample(
                    timestamp=_parse_time(raw_time),
                    metric_name=event.get("metric"),
                    value=data.get("value"),
                )
            except (TypeError, ValueError, AttributeError, ValidationError):
                skipped += 1
                continue

            if container and raw_time != current_time:
                yield container
                container = []
            current_time = raw_time
            container.append(sample)

    if container:
        yield container
    if skipped:
        _log.warning("k6_lines_skipped", count=skipped, path=str(path))


def summarize(input_path: Path, output_path: str = "", extension: str = "compacted-json") -> int:
    output = create_output(extension, OutputParams(config_argument=output_path))
    _log.info("replay_started", input=str(input_path), output=output.description())
    output.start()
    try:
        output.add_metric_samples(read_containers(input_path))
        output.stop()
    finally:
        output.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    cfg = get_settings()
    parser = argparse.ArgumentParser(description="Summarize a k6 JSON output file")
    parser.add_argument("input", type=Path, help="k6 --out json file (NDJSON)")
    parser.add_argument("--out", "-o", type=str, default="", help=f"result file (default: {cfg.output_path})")
    parser.add_argument("--extension", type=str, default="compacted-json")
    parser.add_argument("--log-level", type=str, default=cfg.log_level)
    parser.add_argument("--json-logs", action="store_true", default=cfg.log_json)
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, json_output=args.json_logs)

    if not args.input.is_file():
        _log.error("input_not_found", path=str(args.input))
        return 1
    with run_context(extension=args.extension, input=str(args.input)):
        try:
            return summarize(args.input, args.out, args.extension)
        except (AggregationError, ValidationError, KeyError, OSError) as e:
            _log.error("summarize_failed", error=str(e), error_type=type(e).__name__)
            return 1


if __name__ == "__main__":
    raise SystemExit(main())
