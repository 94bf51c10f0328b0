"""Loads the central YAML config file used by all relay components."""

import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

DEFAULTS = {
    "redis": {
        "url": "redis://localhost:6379/0",
    },
    "queue": {
        "name": "log-processing",
        "attempts": 3,
        "backoff_type": "exponential",
        "backoff_delay": 1.0,
        "remove_on_complete": True,
        "remove_on_fail": 1000,
        "max_error_history": 10,
    },
    "bridge": {
        "raw_list": "logs",
        "in_processing_list": "logs:in-processing",
        "job_name": "log-job",
        "retry_delay": 10.0,
        "block_timeout": 1.0,
        "job_id_strategy": "uuid",
        "wrap_unparseable": False,
        "metrics_file": "data/bridge_metrics.json",
        "metrics_interval": 10,
    },
    "worker": {
        "concurrency": 4,
        "output_file": "logs/processed_logs.log",
        "alert_keywords": ["error"],
        "dedupe": False,
        "poll_timeout": 1.0,
        "metrics_file": "data/worker_metrics.json",
        "metrics_interval": 10,
    },
    "monitor": {
        "host": "0.0.0.0",
        "port": 8000,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into a copy of *base*."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_yaml(path: str = "config.yml") -> dict:
    """Load YAML config from *path* merged over the built-in defaults.

    The path can be overridden via the ``CONFIG_PATH`` environment variable.
    ``REDIS_URL`` and ``LOG_LEVEL`` override their YAML values. A missing file
    yields the defaults.
    """
    path = os.environ.get("CONFIG_PATH", path)
    data: dict = {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)

    cfg = _deep_merge(DEFAULTS, data)
    if os.environ.get("REDIS_URL"):
        cfg["redis"]["url"] = os.environ["REDIS_URL"]
    if os.environ.get("LOG_LEVEL"):
        cfg["logging"]["level"] = os.environ["LOG_LEVEL"].upper()
    return cfg
