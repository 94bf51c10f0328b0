"""Tests for the worker configuration."""

import socket

from worker.src.config import WorkerConfig


class TestWorkerConfig:
    def test_defaults(self):
        cfg = WorkerConfig()
        assert cfg.name == socket.gethostname()
        assert cfg.alert_keywords == ("error",)
        assert cfg.dedupe is False
        assert cfg.output_file == "logs/processed_logs.log"

    def test_from_dict(self):
        cfg = WorkerConfig.from_dict({
            "name": "w1",
            "concurrency": "8",
            "alert_keywords": ["error", "fatal"],
            "dedupe": True,
        })
        assert cfg.name == "w1"
        assert cfg.concurrency == 8
        assert cfg.alert_keywords == ("error", "fatal")
        assert cfg.dedupe is True

    def test_concurrency_at_least_one(self):
        assert WorkerConfig.from_dict({"concurrency": 0}).concurrency == 1

    def test_blank_name_falls_back_to_hostname(self):
        assert WorkerConfig.from_dict({"name": ""}).name == socket.gethostname()
