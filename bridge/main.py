"""Bridge entry point: relays the shipper's raw list into the job queue."""

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from shared.config_loader import load_yaml
from shared.job_queue import JobQueue, QueueConfig
from shared.logging_setup import setup_logging
from shared.metrics import Metrics
from shared.queue_client import connect
from bridge.src.bridge import Bridge
from bridge.src.config import BridgeConfig

logger = logging.getLogger(__name__)


def _snapshot(bridge: Bridge) -> None:
    try:
        bridge.record_depth()
    except Exception as e:
        logger.warning("Could not sample list depths: %s", e)
    bridge.metrics.save()


def main() -> None:
    raw = load_yaml()
    setup_logging("bridge", raw["logging"]["level"], raw["logging"].get("file"))

    cfg = BridgeConfig.from_dict(raw["bridge"])
    client = connect(raw["redis"]["url"])
    job_queue = JobQueue(client, QueueConfig.from_dict(raw["queue"]))
    bridge = Bridge(client, job_queue, cfg, Metrics(cfg.metrics_file))

    stop_event = threading.Event()

    def _shutdown(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler = BackgroundScheduler()
    scheduler.add_job(_snapshot, "interval", seconds=cfg.metrics_interval, args=[bridge])
    scheduler.start()

    logger.info("Starting bridge: raw=%s in-processing=%s queue=%s retry_delay=%.1fs",
                cfg.raw_list, cfg.in_processing_list, job_queue.name, cfg.retry_delay)
    try:
        bridge.run(stop_event)
    finally:
        scheduler.shutdown(wait=False)
        _snapshot(bridge)
        logger.info("Bridge shutdown complete")


if __name__ == "__main__":
    main()
