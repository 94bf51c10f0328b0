"""Crash-safe relay from the shipper's raw list into the job queue.

Each entry moves through a two-list handoff:

1. atomically move it from the raw list's tail to the in-processing list,
2. enqueue it as a job,
3. remove it from the in-processing list by value (the commit point).

An entry is therefore always in the raw list, the in-processing list or the
job queue. Entries stranded in the in-processing list by a crash are pushed
back onto the raw list by ``reconcile_orphans`` on the next start.
"""

import hashlib
import logging
import threading
import uuid

from bridge.src.config import BridgeConfig
from shared.job_queue import JobQueue
from shared.metrics import Metrics
from shared.models import MalformedLogEvent, parse_log_event
from shared.queue_client import QueueClient

logger = logging.getLogger(__name__)


def content_job_id(entry: str) -> str:
    """Deterministic job id for an entry: SHA-256 of its text."""
    return hashlib.sha256(entry.encode("utf-8")).hexdigest()


class Bridge:
    def __init__(self, client: QueueClient, job_queue: JobQueue,
                 config: BridgeConfig | None = None, metrics: Metrics | None = None):
        self._client = client
        self._jobs = job_queue
        self._config = config or BridgeConfig()
        self._metrics = metrics or Metrics()

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def reconcile_orphans(self) -> int:
        """Return every in-processing entry to the raw list. Returns how many moved.

        Must finish before the relay loop starts.
        """
        cfg = self._config
        logger.info("Checking for orphaned entries in %s", cfg.in_processing_list)
        moved = 0
        while True:
            entry = self._client.move_tail(cfg.in_processing_list, cfg.raw_list)
            if entry is None:
                break
            moved += 1
            logger.warning("Re-queued orphaned entry: %s", entry)
        self._metrics.increment("orphans_recovered", moved)
        logger.info("Orphan check complete, %d entr%s re-queued",
                    moved, "y" if moved == 1 else "ies")
        return moved

    def _job_id(self, entry: str) -> str:
        if self._config.job_id_strategy == "content-hash":
            return content_job_id(entry)
        return uuid.uuid4().hex

    def enqueue(self, entry: str) -> str:
        """Step 2: submit an in-processing entry to the job queue."""
        cfg = self._config
        event = parse_log_event(entry, wrap_unparseable=cfg.wrap_unparseable)
        return self._jobs.add(cfg.job_name, event.to_dict(), job_id=self._job_id(entry))

    def release(self, entry: str, job_id: str) -> None:
        """Step 3: drop the entry from the in-processing list by value."""
        self._client.remove_value(self._config.in_processing_list, entry)
        self._metrics.increment("entries_relayed")
        logger.debug("Relayed entry as job %s", job_id)

    def commit(self, entry: str) -> str:
        """Enqueue an entry already in the in-processing list, then release it."""
        job_id = self.enqueue(entry)
        self.release(entry, job_id)
        return job_id

    def relay_once(self, timeout: float | None = None) -> str | None:
        """Run the three-step handoff for one entry.

        Waits up to *timeout* seconds (0 waits forever) for an entry and returns
        the job id, or None if no entry arrived. Errors propagate; the entry
        then stays in the in-processing list.
        """
        cfg = self._config
        if timeout is None:
            timeout = cfg.block_timeout
        entry = self._client.blocking_move_tail(cfg.raw_list, cfg.in_processing_list, timeout)
        if entry is None:
            return None
        return self.commit(entry)

    def run(self, stop_event: threading.Event) -> None:
        """Reconcile orphans, then relay until *stop_event* is set.

        A failed handoff pauses for ``retry_delay`` and is then retried on the
        same entry, resuming at the step that failed: an entry already in the
        job queue is only released, never submitted again. Unparseable entries
        stay in the in-processing list.
        """
        cfg = self._config
        self.reconcile_orphans()
        logger.info("Relaying %s -> job queue %s (in-processing list %s)",
                    cfg.raw_list, self._jobs.name, cfg.in_processing_list)

        held, held_job_id = None, None
        while not stop_event.is_set():
            entry, job_id = None, None
            try:
                if held is not None:
                    entry, job_id = held, held_job_id
                    held, held_job_id = None, None
                else:
                    entry = self._client.blocking_move_tail(
                        cfg.raw_list, cfg.in_processing_list, cfg.block_timeout,
                    )
                    if entry is None:
                        continue
                if job_id is None:
                    job_id = self.enqueue(entry)
                self.release(entry, job_id)
            except MalformedLogEvent as e:
                # Kept in the in-processing list until the next start returns it.
                self._metrics.increment("relay_errors")
                self._metrics.increment("malformed_entries")
                logger.error("Unparseable entry left in %s (%s). Log content: %s",
                             cfg.in_processing_list, e.reason, entry)
                stop_event.wait(cfg.retry_delay)
            except Exception as e:
                self._metrics.increment("relay_errors")
                logger.error("Relay failed: %s", e, exc_info=True)
                if entry is not None:
                    if job_id is None:
                        logger.error("Entry still held in %s for recovery. Log content: %s",
                                     cfg.in_processing_list, entry)
                    else:
                        logger.error("Entry already queued as job %s, removal from %s "
                                     "will be retried. Log content: %s",
                                     job_id, cfg.in_processing_list, entry)
                    held, held_job_id = entry, job_id
                logger.error("Pausing %.1fs before retrying", cfg.retry_delay)
                stop_event.wait(cfg.retry_delay)

        logger.info("Relay loop stopped")

    def record_depth(self) -> None:
        """Sample the in-processing and raw list depths into the gauges."""
        cfg = self._config
        self._metrics.set_gauge("in_processing_depth", self._client.length(cfg.in_processing_list))
        self._metrics.set_gauge("raw_depth", self._client.length(cfg.raw_list))
