"""Atomic list and set primitives over a shared store.

Two backends implement the same surface:

* ``RedisQueueClient``: backed by a Redis server.
* ``MemoryQueueClient``: in-process and thread-safe, for tests and demos.

Lists follow Redis semantics: index 0 is the head. Producers push at the head
and consumers take from the tail, so a list behaves as a FIFO queue.
"""

import logging
import threading
import time
from collections import deque
from typing import Protocol, runtime_checkable

import redis

logger = logging.getLogger(__name__)


class QueueClientError(Exception):
    """Raised when the backing store cannot complete an operation."""


@runtime_checkable
class QueueClient(Protocol):
    def blocking_move_tail(self, src: str, dst: str, timeout: float) -> str | None: ...

    def move_tail(self, src: str, dst: str) -> str | None: ...

    def push_head(self, key: str, value: str) -> None: ...

    def pop_tail(self, key: str) -> str | None: ...

    def remove_value(self, key: str, value: str, count: int = 1) -> int: ...

    def length(self, key: str) -> int: ...

    def items(self, key: str) -> list[str]: ...

    def add_member(self, key: str, member: str) -> bool: ...

    def remove_member(self, key: str, member: str) -> None: ...

    def is_member(self, key: str, member: str) -> bool: ...

    def members(self, key: str) -> set[str]: ...

    def ping(self) -> bool: ...


class RedisQueueClient:
    """QueueClient backed by redis-py. All values are text (decode_responses)."""

    def __init__(self, client: redis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisQueueClient":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def blocking_move_tail(self, src: str, dst: str, timeout: float) -> str | None:
        # BLMOVE src dst RIGHT LEFT is the non-deprecated BRPOPLPUSH.
        try:
            return self._redis.blmove(src, dst, timeout, src="RIGHT", dest="LEFT")
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"blmove {src} -> {dst} failed: {e}") from e

    def move_tail(self, src: str, dst: str) -> str | None:
        try:
            return self._redis.lmove(src, dst, src="RIGHT", dest="LEFT")
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"lmove {src} -> {dst} failed: {e}") from e

    def push_head(self, key: str, value: str) -> None:
        try:
            self._redis.lpush(key, value)
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"lpush {key} failed: {e}") from e

    def pop_tail(self, key: str) -> str | None:
        try:
            return self._redis.rpop(key)
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"rpop {key} failed: {e}") from e

    def remove_value(self, key: str, value: str, count: int = 1) -> int:
        try:
            return int(self._redis.lrem(key, count, value))
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"lrem {key} failed: {e}") from e

    def length(self, key: str) -> int:
        try:
            return int(self._redis.llen(key))
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"llen {key} failed: {e}") from e

    def items(self, key: str) -> list[str]:
        try:
            return list(self._redis.lrange(key, 0, -1))
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"lrange {key} failed: {e}") from e

    def add_member(self, key: str, member: str) -> bool:
        try:
            return int(self._redis.sadd(key, member)) == 1
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"sadd {key} failed: {e}") from e

    def remove_member(self, key: str, member: str) -> None:
        try:
            self._redis.srem(key, member)
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"srem {key} failed: {e}") from e

    def is_member(self, key: str, member: str) -> bool:
        try:
            return bool(self._redis.sismember(key, member))
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"sismember {key} failed: {e}") from e

    def members(self, key: str) -> set[str]:
        try:
            return set(self._redis.smembers(key))
        except redis.exceptions.RedisError as e:
            raise QueueClientError(f"smembers {key} failed: {e}") from e

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.exceptions.RedisError:
            return False


class MemoryQueueClient:
    """Thread-safe in-process QueueClient.

    Every operation holds a single condition lock, so each call is atomic with
    respect to every other call, which is the guarantee the Redis backend gives.
    """

    def __init__(self):
        self._lists: dict[str, deque] = {}
        self._sets: dict[str, set] = {}
        self._cond = threading.Condition()

    def _list(self, key: str) -> deque:
        return self._lists.setdefault(key, deque())

    def _move_locked(self, src: str, dst: str) -> str | None:
        items = self._lists.get(src)
        if not items:
            return None
        value = items.pop()
        self._list(dst).appendleft(value)
        self._cond.notify_all()
        return value

    def blocking_move_tail(self, src: str, dst: str, timeout: float) -> str | None:
        deadline = None if not timeout else time.monotonic() + timeout
        with self._cond:
            while True:
                value = self._move_locked(src, dst)
                if value is not None:
                    return value
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)

    def move_tail(self, src: str, dst: str) -> str | None:
        with self._cond:
            return self._move_locked(src, dst)

    def push_head(self, key: str, value: str) -> None:
        with self._cond:
            self._list(key).appendleft(value)
            self._cond.notify_all()

    def pop_tail(self, key: str) -> str | None:
        with self._cond:
            items = self._lists.get(key)
            return items.pop() if items else None

    def remove_value(self, key: str, value: str, count: int = 1) -> int:
        """Redis LREM semantics: count > 0 from head, < 0 from tail, 0 all."""
        with self._cond:
            items = self._lists.get(key)
            if not items:
                return 0
            limit = abs(count) or len(items)
            ordered = list(items) if count >= 0 else list(reversed(items))
            kept = []
            removed = 0
            for item in ordered:
                if item == value and removed < limit:
                    removed += 1
                    continue
                kept.append(item)
            if count < 0:
                kept.reverse()
            self._lists[key] = deque(kept)
            return removed

    def length(self, key: str) -> int:
        with self._cond:
            return len(self._lists.get(key, ()))

    def items(self, key: str) -> list[str]:
        with self._cond:
            return list(self._lists.get(key, ()))

    def add_member(self, key: str, member: str) -> bool:
        with self._cond:
            members = self._sets.setdefault(key, set())
            if member in members:
                return False
            members.add(member)
            return True

    def remove_member(self, key: str, member: str) -> None:
        with self._cond:
            self._sets.get(key, set()).discard(member)

    def is_member(self, key: str, member: str) -> bool:
        with self._cond:
            return member in self._sets.get(key, ())

    def members(self, key: str) -> set[str]:
        with self._cond:
            return set(self._sets.get(key, ()))

    def ping(self) -> bool:
        return True


def connect(url: str) -> QueueClient:
    """Build a client from a URL. ``memory://`` selects the in-process store."""
    if url.startswith("memory://"):
        logger.info("Using in-memory queue store")
        return MemoryQueueClient()
    logger.info("Connecting to Redis at %s", url.split("@")[-1])
    return RedisQueueClient.from_url(url)
