"""Worker entry point: consumes log jobs and appends processed records."""

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from shared.config_loader import load_yaml
from shared.job_queue import JobQueue, QueueConfig
from shared.logging_setup import setup_logging
from shared.metrics import Metrics
from shared.queue_client import connect
from worker.src.alerts import KeywordAlertRule
from worker.src.config import WorkerConfig
from worker.src.output import ProcessedLogWriter
from worker.src.processor import LogProcessor
from worker.src.worker import Worker

logger = logging.getLogger(__name__)


def _snapshot(job_queue: JobQueue, metrics: Metrics) -> None:
    try:
        for state, count in job_queue.counts().items():
            metrics.set_gauge(f"queue_{state}", count)
    except Exception as e:
        logger.warning("Could not sample queue counts: %s", e)
    metrics.save()


def main() -> None:
    raw = load_yaml()
    setup_logging("worker", raw["logging"]["level"], raw["logging"].get("file"))

    cfg = WorkerConfig.from_dict(raw["worker"])
    client = connect(raw["redis"]["url"])
    job_queue = JobQueue(client, QueueConfig.from_dict(raw["queue"]))
    metrics = Metrics(cfg.metrics_file)
    writer = ProcessedLogWriter(cfg.output_file)
    processor = LogProcessor(writer, KeywordAlertRule(cfg.alert_keywords), metrics)
    worker = Worker(job_queue, processor, cfg, metrics)

    stop_event = threading.Event()

    def _shutdown(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler = BackgroundScheduler()
    scheduler.add_job(_snapshot, "interval", seconds=cfg.metrics_interval,
                      args=[job_queue, metrics])
    scheduler.start()

    logger.info("Starting worker %s for queue %s, writing to %s",
                cfg.name, job_queue.name, cfg.output_file)
    worker.start(stop_event)
    try:
        # Main thread stays free to receive signals.
        while not stop_event.wait(1.0):
            pass
        worker.join(timeout=cfg.poll_timeout + 5)
    finally:
        scheduler.shutdown(wait=False)
        _snapshot(job_queue, metrics)
        writer.close()
        logger.info("Worker shutdown complete")


if __name__ == "__main__":
    main()
