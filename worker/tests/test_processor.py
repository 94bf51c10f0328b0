"""Tests for the per-job processor."""

import json

import pytest

from shared.metrics import Metrics
from shared.models import Job
from worker.src.alerts import KeywordAlertRule
from worker.src.output import ProcessedLogWriter
from worker.src.processor import LogProcessor


class RecordingHandler:
    def __init__(self):
        self.alerts = []

    def handle(self, alert: dict) -> None:
        self.alerts.append(alert)


@pytest.fixture
def setup(tmp_path):
    path = tmp_path / "processed_logs.log"
    writer = ProcessedLogWriter(str(path))
    handler = RecordingHandler()
    metrics = Metrics()
    processor = LogProcessor(writer, KeywordAlertRule(handlers=[handler]), metrics)
    yield processor, path, handler, metrics
    writer.close()


def read_records(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestLogProcessor:
    def test_appends_record_and_returns_status(self, setup):
        processor, path, _, metrics = setup
        data = {"message": "user login", "log_type": "info"}
        result = processor(Job(id="j1", name="log-job", data=data))
        assert result == {"status": "Completed", "writtenToFile": True}
        records = read_records(path)
        assert len(records) == 1
        assert records[0]["jobId"] == "j1"
        assert records[0]["data"] == data
        assert records[0]["processedAt"].endswith("Z")
        assert metrics.get("records_written") == 1

    def test_error_message_raises_alert(self, setup):
        processor, path, handler, metrics = setup
        processor(Job(id="j2", name="log-job", data={"message": "db error"}))
        assert len(read_records(path)) == 1
        assert [a["job_id"] for a in handler.alerts] == ["j2"]
        assert metrics.get("alerts_emitted") == 1

    def test_non_string_message_is_written_without_alert(self, setup):
        processor, path, handler, _ = setup
        processor(Job(id="j3", name="log-job", data={"message": 500}))
        assert read_records(path)[0]["data"] == {"message": 500}
        assert handler.alerts == []

    def test_write_failure_propagates(self, setup):
        processor, path, _, metrics = setup
        processor._writer.close()
        with pytest.raises(ValueError):
            processor(Job(id="j4", name="log-job", data={"message": "m"}))
        assert metrics.get("records_written") == 0

    def test_same_job_twice_gives_two_lines(self, setup):
        processor, path, _, _ = setup
        job = Job(id="dup", name="log-job", data={"message": "m"})
        processor(job)
        processor(job)
        assert [r["jobId"] for r in read_records(path)] == ["dup", "dup"]
