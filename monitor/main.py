"""Monitor entry point: starts the Flask status app."""

from shared.config_loader import load_yaml
from shared.job_queue import JobQueue, QueueConfig
from shared.logging_setup import setup_logging
from shared.queue_client import connect
from bridge.src.config import BridgeConfig
from monitor.src.web import create_app


def main() -> None:
    raw = load_yaml()
    setup_logging("monitor", raw["logging"]["level"], raw["logging"].get("file"))

    client = connect(raw["redis"]["url"])
    job_queue = JobQueue(client, QueueConfig.from_dict(raw["queue"]))
    metrics_files = {
        name: raw[name]["metrics_file"]
        for name in ("bridge", "worker")
        if raw[name].get("metrics_file")
    }
    app = create_app(client, job_queue, BridgeConfig.from_dict(raw["bridge"]), metrics_files)
    app.run(host=raw["monitor"]["host"], port=int(raw["monitor"]["port"]))


if __name__ == "__main__":
    main()
