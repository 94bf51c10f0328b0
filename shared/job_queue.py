"""Durable job queue with leases, retry/backoff and a bounded failure record.

All state lives in the shared store behind a QueueClient, so producers and
consumers in different processes see the same queue. Keys for a queue named
``Q``:

    Q:wait                 pending jobs (push head, take tail)
    Q:active:<consumer>    jobs leased by one consumer
    Q:delayed:<consumer>   that consumer's jobs waiting out a retry backoff
    Q:failed               jobs out of attempts, most recent first
    Q:completed            finished jobs, only when retention asks for it
    Q:ids                  ids of jobs currently held by the queue
    Q:consumers            consumer ids seen by this queue
    Q:processed            ids already processed by consumers in dedupe mode

Every state change writes the new record before releasing the old one, so a
crash in between leaves a duplicate, never a gap.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from shared.models import Job, utc_now_iso
from shared.queue_client import QueueClient

logger = logging.getLogger(__name__)

BACKOFF_TYPES = ("fixed", "exponential")


class JobQueueError(Exception):
    """Raised for invalid job options."""


@dataclass(frozen=True)
class QueueConfig:
    name: str = "log-processing"
    attempts: int = 3
    backoff_type: str = "exponential"
    backoff_delay: float = 1.0
    remove_on_complete: bool | int = True
    remove_on_fail: bool | int = 1000
    max_error_history: int = 10

    @classmethod
    def from_dict(cls, d: dict) -> "QueueConfig":
        return cls(
            name=d.get("name", cls.name),
            attempts=int(d.get("attempts", cls.attempts)),
            backoff_type=d.get("backoff_type", cls.backoff_type),
            backoff_delay=float(d.get("backoff_delay", cls.backoff_delay)),
            remove_on_complete=d.get("remove_on_complete", cls.remove_on_complete),
            remove_on_fail=d.get("remove_on_fail", cls.remove_on_fail),
            max_error_history=int(d.get("max_error_history", cls.max_error_history)),
        )


def _retention(value) -> int | None:
    """Translate a remove-on option into how many records to keep.

    ``True`` keeps none, ``False`` keeps all (None), an int keeps that many.
    """
    if value is True:
        return 0
    if value is False or value is None:
        return None
    return max(0, int(value))


def _id_of(raw: str) -> str | None:
    try:
        return Job.from_json(raw).id
    except (ValueError, KeyError, TypeError):
        return None


class JobQueue:
    def __init__(self, client: QueueClient, config: QueueConfig | None = None,
                 clock: Callable[[], float] = time.time):
        self._client = client
        self._config = config or QueueConfig()
        self._clock = clock
        name = self._config.name
        self.wait_key = f"{name}:wait"
        self.failed_key = f"{name}:failed"
        self.completed_key = f"{name}:completed"
        self.ids_key = f"{name}:ids"
        self.consumers_key = f"{name}:consumers"
        self.processed_key = f"{name}:processed"

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    def active_key(self, consumer: str) -> str:
        return f"{self._config.name}:active:{consumer}"

    def delayed_key(self, consumer: str) -> str:
        return f"{self._config.name}:delayed:{consumer}"

    # ── producer side ────────────────────────────────────────────────

    def add(self, name: str, data: dict, job_id: str | None = None,
            attempts: int | None = None, backoff_type: str | None = None,
            backoff_delay: float | None = None,
            remove_on_complete: bool | int | None = None,
            remove_on_fail: bool | int | None = None) -> str:
        """Enqueue a job and return its id.

        A job id the queue already holds is not enqueued a second time.
        """
        cfg = self._config
        job = Job(
            id=job_id or uuid.uuid4().hex,
            name=name,
            data=data,
            attempts=cfg.attempts if attempts is None else attempts,
            backoff_type=cfg.backoff_type if backoff_type is None else backoff_type,
            backoff_delay=cfg.backoff_delay if backoff_delay is None else backoff_delay,
            remove_on_complete=(cfg.remove_on_complete if remove_on_complete is None
                                else remove_on_complete),
            remove_on_fail=cfg.remove_on_fail if remove_on_fail is None else remove_on_fail,
        )
        if job.attempts < 1:
            raise JobQueueError(f"attempts must be >= 1, got {job.attempts}")
        if job.backoff_type not in BACKOFF_TYPES:
            raise JobQueueError(f"unknown backoff type {job.backoff_type!r}")

        if self._client.is_member(self.ids_key, job.id):
            logger.debug("Job %s already in queue %s, not adding again", job.id, self.name)
            return job.id

        self._client.push_head(self.wait_key, job.to_json())
        self._client.add_member(self.ids_key, job.id)
        return job.id

    # ── consumer side ────────────────────────────────────────────────

    def register_consumer(self, consumer: str) -> None:
        self._client.add_member(self.consumers_key, consumer)

    def recover_stalled(self, consumer: str) -> int:
        """Return a consumer's leased and delayed jobs to the wait list.

        Only safe before that consumer starts reserving.
        """
        recovered = 0
        for key in (self.active_key(consumer), self.delayed_key(consumer)):
            while self._client.move_tail(key, self.wait_key) is not None:
                recovered += 1
        if recovered:
            logger.warning("Recovered %d stalled job(s) for consumer %s", recovered, consumer)
        return recovered

    def backoff_for(self, job: Job) -> float:
        if job.backoff_type == "exponential":
            return job.backoff_delay * (2 ** max(0, job.attempts_made - 1))
        return job.backoff_delay

    def _promote(self, consumer: str) -> tuple[int, float | None]:
        key = self.delayed_key(consumer)
        now = self._clock()
        promoted = 0
        next_due = None
        # Oldest first: the tail holds the earliest failure.
        for raw in reversed(self._client.items(key)):
            job = Job.from_json(raw)
            if job.available_at > now:
                next_due = job.available_at if next_due is None else min(next_due, job.available_at)
                continue
            job.state = "pending"
            job.available_at = 0.0
            self._client.push_head(self.wait_key, job.to_json())
            self._client.remove_value(key, raw)
            promoted += 1
        return promoted, next_due

    def promote_delayed(self, consumer: str) -> int:
        """Move this consumer's delayed jobs whose backoff has elapsed to wait."""
        return self._promote(consumer)[0]

    def reserve(self, consumer: str, timeout: float) -> Job | None:
        """Lease the oldest pending job, waiting up to *timeout* seconds."""
        _, next_due = self._promote(consumer)
        if next_due is not None:
            until_due = max(0.01, next_due - self._clock())
            timeout = until_due if not timeout else min(timeout, until_due)

        raw = self._client.blocking_move_tail(self.wait_key, self.active_key(consumer), timeout)
        if raw is None:
            return None
        try:
            job = Job.from_json(raw)
        except (ValueError, KeyError, TypeError):
            logger.error("Unreadable job record moved to %s: %s", self.failed_key, raw)
            self._client.push_head(self.failed_key, raw)
            self._client.remove_value(self.active_key(consumer), raw)
            return None
        job.state = "active"
        return job

    def complete(self, job: Job, consumer: str, result=None) -> None:
        job.state = "completed"
        job.finished_at = utc_now_iso()
        keep = _retention(job.remove_on_complete)
        if keep == 0:
            self._client.remove_member(self.ids_key, job.id)
        else:
            self._client.push_head(self.completed_key, job.to_json())
            if keep is not None:
                self._trim(self.completed_key, keep)
        self._client.remove_value(self.active_key(consumer), job.raw)
        logger.debug("Job %s completed: %s", job.id, result)

    def fail(self, job: Job, consumer: str, error) -> str:
        """Record a failed attempt; schedule a retry or move to the failure record.

        Returns the job's resulting state: ``delayed`` or ``failed``.
        """
        history = max(1, self._config.max_error_history)
        job.attempts_made += 1
        job.errors = (job.errors + [str(error)])[-history:]

        if job.attempts_made < job.attempts:
            delay = self.backoff_for(job)
            job.state = "delayed"
            job.available_at = self._clock() + delay
            self._client.push_head(self.delayed_key(consumer), job.to_json())
            logger.warning("Job %s failed (attempt %d/%d), retrying in %.1fs: %s",
                           job.id, job.attempts_made, job.attempts, delay, error)
        else:
            job.state = "failed"
            job.finished_at = utc_now_iso()
            keep = _retention(job.remove_on_fail)
            if keep == 0:
                self._client.remove_member(self.ids_key, job.id)
            else:
                self._client.push_head(self.failed_key, job.to_json())
                if keep is not None:
                    self._trim(self.failed_key, keep)
            logger.error("Job %s failed after %d attempt(s): %s",
                         job.id, job.attempts_made, error)

        self._client.remove_value(self.active_key(consumer), job.raw)
        return job.state

    def process_next(self, consumer: str, handler: Callable[[Job], object],
                     timeout: float) -> Job | None:
        """Reserve one job and run *handler* on it.

        The handler's return value completes the job; an exception fails it.
        Returns the job with its final state, or None if nothing was reserved.
        """
        job = self.reserve(consumer, timeout)
        if job is None:
            return None
        try:
            result = handler(job)
        except Exception as e:
            self.fail(job, consumer, f"{type(e).__name__}: {e}")
            return job
        self.complete(job, consumer, result)
        return job

    # ── optional processed-id guard ──────────────────────────────────

    def is_processed(self, job_id: str) -> bool:
        return self._client.is_member(self.processed_key, job_id)

    def mark_processed(self, job_id: str) -> None:
        self._client.add_member(self.processed_key, job_id)

    # ── inspection ───────────────────────────────────────────────────

    def counts(self) -> dict:
        consumers = sorted(self._client.members(self.consumers_key))
        return {
            "wait": self._client.length(self.wait_key),
            "active": sum(self._client.length(self.active_key(c)) for c in consumers),
            "delayed": sum(self._client.length(self.delayed_key(c)) for c in consumers),
            "failed": self._client.length(self.failed_key),
            "completed": self._client.length(self.completed_key),
        }

    def failed_jobs(self, limit: int = 50) -> list[Job]:
        jobs = []
        for raw in self._client.items(self.failed_key)[:limit]:
            try:
                jobs.append(Job.from_json(raw))
            except (ValueError, KeyError, TypeError):
                logger.warning("Skipping unreadable failed record: %s", raw)
        return jobs

    def _trim(self, key: str, keep: int) -> None:
        """Drop the oldest records of *key* beyond *keep*, forgetting their ids."""
        while self._client.length(key) > keep:
            raw = self._client.pop_tail(key)
            if raw is None:
                break
            job_id = _id_of(raw)
            if job_id:
                self._client.remove_member(self.ids_key, job_id)
