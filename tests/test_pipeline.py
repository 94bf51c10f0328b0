"""Tests for the pipeline control script."""

import json
import os

import pytest

import pipeline


class TestPidFile:
    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "pids")
        pipeline.write_pids([("bridge", 101), ("worker", 102)], path)
        assert pipeline.read_pids(path) == [("bridge", 101), ("worker", 102)]

    def test_missing_file(self, tmp_path):
        assert pipeline.read_pids(str(tmp_path / "none")) == []

    def test_own_process_is_alive(self):
        assert pipeline.is_alive(os.getpid())


class TestBuildEntry:
    def test_shape(self):
        entry = json.loads(pipeline.build_entry("db error", "error", "2024-01-01T00:00:00Z"))
        assert entry == {
            "message": "db error",
            "timestamp": "2024-01-01T00:00:00Z",
            "log_type": "error",
        }

    def test_log_type_optional(self):
        entry = json.loads(pipeline.build_entry("hello"))
        assert "log_type" not in entry
        assert entry["timestamp"].endswith("Z")


class TestParser:
    def test_push_arguments(self):
        args = pipeline.build_parser().parse_args(["push", "m", "--log-type", "info", "--count", "3"])
        assert args.func is pipeline.cmd_push
        assert (args.message, args.log_type, args.count) == ("m", "info", 3)

    def test_start_only_validates_names(self):
        with pytest.raises(SystemExit):
            pipeline.build_parser().parse_args(["start", "--only", "collector"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            pipeline.build_parser().parse_args([])


def test_push_writes_to_raw_list(monkeypatch, tmp_path):
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "absent.yml"))
    monkeypatch.setenv("REDIS_URL", "memory://")
    from shared.queue_client import MemoryQueueClient

    client = MemoryQueueClient()
    monkeypatch.setattr(pipeline, "connect", lambda url: client)
    assert pipeline.main(["push", "db error", "--log-type", "error", "--count", "2"]) == 0
    entries = [json.loads(e) for e in client.items("logs")]
    assert [e["message"] for e in entries] == ["db error", "db error"]
