"""Pool of job queue consumers that turn log jobs into processed records."""

import logging
import threading
from typing import Callable

from shared.job_queue import JobQueue
from shared.metrics import Metrics
from shared.models import Job
from worker.src.config import WorkerConfig

logger = logging.getLogger(__name__)


class Worker:
    """Runs ``concurrency`` consumer threads against one job queue.

    Each thread has a stable consumer id (``<name>-<index>``) so that a
    restarted worker can reclaim the leases its previous incarnation held.
    Retry policy belongs to the job queue; the worker never retries locally.
    """

    def __init__(self, job_queue: JobQueue, processor: Callable[[Job], dict],
                 config: WorkerConfig | None = None, metrics: Metrics | None = None):
        self._jobs = job_queue
        self._processor = processor
        self._config = config or WorkerConfig()
        self._metrics = metrics or Metrics()
        self._threads: list[threading.Thread] = []

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def consumer_ids(self) -> list[str]:
        return [f"{self._config.name}-{i}" for i in range(self._config.concurrency)]

    def handle(self, job: Job) -> dict:
        """Run the processor, skipping job ids already recorded as processed.

        The id is recorded only after the processor returns, so a crash
        mid-job leads to a second attempt rather than a skipped one.
        """
        if self._config.dedupe and self._jobs.is_processed(job.id):
            logger.warning("Skipping job %s, already processed", job.id)
            self._metrics.increment("jobs_skipped")
            return {"status": "Skipped", "writtenToFile": False}
        result = self._processor(job)
        if self._config.dedupe:
            self._jobs.mark_processed(job.id)
        return result

    def _on_finished(self, job: Job) -> None:
        if job.state == "completed":
            self._metrics.increment("jobs_completed")
            logger.info("Job %s completed", job.id)
        elif job.state == "delayed":
            self._metrics.increment("jobs_retried")
        else:
            self._metrics.increment("jobs_failed")
            logger.error("Job %s failed: %s", job.id, job.errors[-1] if job.errors else "")

    def run_consumer(self, consumer: str, stop_event: threading.Event) -> None:
        """Consume jobs as *consumer* until *stop_event* is set."""
        self._jobs.register_consumer(consumer)
        self._jobs.recover_stalled(consumer)
        logger.info("Consumer %s listening on queue %s", consumer, self._jobs.name)

        while not stop_event.is_set():
            try:
                job = self._jobs.process_next(consumer, self.handle, self._config.poll_timeout)
            except Exception as e:
                self._metrics.increment("consumer_errors")
                logger.error("Consumer %s error: %s", consumer, e, exc_info=True)
                stop_event.wait(self._config.poll_timeout)
                continue
            if job is not None:
                self._on_finished(job)

        logger.info("Consumer %s stopped", consumer)

    def start(self, stop_event: threading.Event) -> list[threading.Thread]:
        for consumer in self.consumer_ids():
            t = threading.Thread(
                target=self.run_consumer, args=(consumer, stop_event),
                name=f"consumer-{consumer}", daemon=True,
            )
            t.start()
            self._threads.append(t)
        logger.info("Worker %s started with concurrency %d",
                    self._config.name, self._config.concurrency)
        return list(self._threads)

    def join(self, timeout: float | None = None) -> None:
        for t in self._threads:
            t.join(timeout=timeout)
        self._threads = [t for t in self._threads if t.is_alive()]

    def run(self, stop_event: threading.Event) -> None:
        """Start the pool and block until every consumer has stopped."""
        self.start(stop_event)
        self.join()
