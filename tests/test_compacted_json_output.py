"""
Tests for the compacted-json output extension, the extension registry,
and the k6 NDJSON replay script.
"""
import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from configs.settings import get_settings
from services.aggregation_service import DegenerateDurationError, EmptyBatchError, Sample
from services.output_service import (
    CompactedJsonOutput,
    OutputParams,
    available_extensions,
    create_output,
    get_extension,
    register_extension,
)
import scripts.summarize_k6 as summarize_k6
from scripts.summarize_k6 import main, read_containers


def container(ts, requests=1, failed=0, duration=10.0):
    return [
        Sample(timestamp=ts, metric_name="http_reqs", value=requests),
        Sample(timestamp=ts, metric_name="http_req_failed", value=failed),
        Sample(timestamp=ts, metric_name="http_req_duration", value=duration),
    ]


def k6_point(metric, time, value):
    return json.dumps({"type": "Point", "metric": metric, "data": {"time": time, "value": value, "tags": {}}})


class TestRegistry:
    def test_builtin_registered(self):
        assert "compacted-json" in available_extensions()
        assert get_extension("compacted-json") is CompactedJsonOutput

    def test_duplicate_name(self):
        with pytest.raises(ValueError):
            register_extension("compacted-json", CompactedJsonOutput)

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            get_extension("no-such-output")


class TestCompactedJsonOutput:
    def test_writes_indented_result(self, tmp_path):
        path = tmp_path / "out" / "result.json"
        output = create_output("compacted-json", OutputParams(config_argument=str(path)))
        output.start()
        assert path.exists()

        output.add_metric_samples([container(1000, failed=1, duration=100.0), container(1000, duration=200.0)])
        output.add_metric_samples([container(1001, duration=50.0)])
        output.stop()

        text = path.read_text(encoding="utf-8")
        assert text.startswith("{\n    \"points\"")
        data = json.loads(text)
        assert data["points"]["1000"] == {"requestRate": 2.0, "errorRate": 1.0, "requestDuration": 200.0}
        assert data["summary"] == {
            "totalRequest": 3,
            "totalSuccess": 2,
            "totalError": 1,
            "requestRatePerSecond": 3.0,
            "requestDuration": 200.0,
        }
        assert output.result.summary.total_request == 3

    def test_description_names_path(self, tmp_path):
        output = CompactedJsonOutput(OutputParams(config_argument=str(tmp_path / "r.json")))
        assert "compacted-json" in output.description()
        assert "r.json" in output.description()

    def test_default_path_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OUTPUT_PATH", str(tmp_path / "env.json"))
        get_settings.cache_clear()
        try:
            output = CompactedJsonOutput(OutputParams())
            assert output.path == tmp_path / "env.json"
        finally:
            get_settings.cache_clear()

    def test_failed_stop_writes_nothing(self, tmp_path):
        path = tmp_path / "result.json"
        output = CompactedJsonOutput(OutputParams(config_argument=str(path)))
        output.start()
        output.add_metric_samples([container(1000)])
        with pytest.raises(DegenerateDurationError):
            output.stop()
        assert path.read_text(encoding="utf-8") == ""
        assert output.result is None

    def test_stop_before_start(self, tmp_path):
        output = CompactedJsonOutput(OutputParams(config_argument=str(tmp_path / "r.json")))
        with pytest.raises(RuntimeError):
            output.stop()

    def test_restart_closes_previous_file(self, tmp_path):
        output = CompactedJsonOutput(OutputParams(config_argument=str(tmp_path / "r.json")))
        output.start()
        first = output._file
        output.start()
        assert first.closed
        assert not output._file.closed
        output.close()
        assert output._file is None

    def test_close_after_rejected_batch(self, tmp_path):
        output = CompactedJsonOutput(OutputParams(config_argument=str(tmp_path / "r.json")))
        output.start()
        handle = output._file
        with pytest.raises(EmptyBatchError):
            output.add_metric_samples([[]])
        output.close()
        output.close()
        assert handle.closed


class TestK6Replay:
    def write_ndjson(self, path, lines):
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def test_groups_points_by_time(self, tmp_path):
        src = tmp_path / "k6.ndjson"
        self.write_ndjson(src, [
            json.dumps({"type": "Metric", "metric": "http_reqs", "data": {"type": "counter"}}),
            k6_point("http_reqs", "2024-05-01T10:00:00.100Z", 1),
            k6_point("http_req_duration", "2024-05-01T10:00:00.100Z", 12.5),
            "not json",
            k6_point("http_reqs", "2024-05-01T10:00:00.400Z", 1),
            k6_point("http_req_duration", "2024-05-01T10:00:00.400Z", 7.5),
        ])
        containers = list(read_containers(src))
        assert [len(c) for c in containers] == [2, 2]
        assert containers[0][0].timestamp == 1714557600

    def test_skips_points_without_time(self, tmp_path):
        src = tmp_path / "k6.ndjson"
        self.write_ndjson(src, [
            json.dumps({"type": "Point", "metric": "http_reqs", "data": {"value": 1}}),
            k6_point("http_reqs", "2024-05-01T10:00:00Z", 1),
        ])
        assert [len(c) for c in read_containers(src)] == [1]

    def test_skips_non_finite_values(self, tmp_path):
        src = tmp_path / "k6.ndjson"
        self.write_ndjson(src, [
            k6_point("http_reqs", "2024-05-01T10:00:00Z", float("inf")),
            k6_point("http_req_duration", "2024-05-01T10:00:00Z", float("nan")),
            k6_point("http_req_duration", "2024-05-01T10:00:00Z", 4.0),
        ])
        containers = list(read_containers(src))
        assert [[x.value for x in c] for c in containers] == [[4.0]]

    def test_main_writes_result(self, tmp_path):
        src = tmp_path / "k6.ndjson"
        out = tmp_path / "result.json"
        lines = []
        for second in range(3):
            stamp = f"2024-05-01T10:00:0{second}.250Z"
            lines += [
                k6_point("http_reqs", stamp, 1),
                k6_point("http_req_failed", stamp, 1 if second == 2 else 0),
                k6_point("http_req_duration", stamp, 10.0 * (second + 1)),
            ]
        self.write_ndjson(src, lines)

        assert main([str(src), "--out", str(out)]) == 0
        data = json.loads(out.read_text(encoding="utf-8"))
        assert sorted(data["points"]) == ["1714557600", "1714557601", "1714557602"]
        assert data["summary"]["totalRequest"] == 3
        assert data["summary"]["totalError"] == 1
        assert data["summary"]["requestRatePerSecond"] == 1.5
        assert data["summary"]["requestDuration"] == 30.0

    def test_summarize_closes_file_when_ingest_fails(self, tmp_path, monkeypatch):
        opened = []
        original_start = CompactedJsonOutput.start

        def recording_start(self):
            original_start(self)
            opened.append(self._file)

        monkeypatch.setattr(CompactedJsonOutput, "start", recording_start)
        monkeypatch.setattr(summarize_k6, "read_containers", lambda path: iter([[]]))

        with pytest.raises(EmptyBatchError):
            summarize_k6.summarize(tmp_path / "k6.ndjson", str(tmp_path / "r.json"))
        assert len(opened) == 1
        assert opened[0].closed

    def test_main_missing_input(self, tmp_path):
        assert main([str(tmp_path / "missing.ndjson"), "--out", str(tmp_path / "r.json")]) == 1

    def test_main_degenerate_run(self, tmp_path):
        src = tmp_path / "k6.ndjson"
        self.write_ndjson(src, [
            k6_point("http_reqs", "2024-05-01T10:00:00Z", 1),
            k6_point("http_req_duration", "2024-05-01T10:00:00Z", 5.0),
        ])
        assert main([str(src), "--out", str(tmp_path / "r.json")]) == 1
