"""Tests for shared/queue_client.py: in-memory and Redis backends."""

import threading
import time
from unittest.mock import MagicMock

import pytest
import redis

from shared.queue_client import (
    MemoryQueueClient,
    QueueClient,
    QueueClientError,
    RedisQueueClient,
    connect,
)


# ── MemoryQueueClient ────────────────────────────────────────────────

class TestMemoryLists:
    def test_push_head_and_pop_tail_is_fifo(self):
        c = MemoryQueueClient()
        for v in ("a", "b", "c"):
            c.push_head("q", v)
        assert c.items("q") == ["c", "b", "a"]
        assert c.pop_tail("q") == "a"
        assert c.pop_tail("q") == "b"
        assert c.pop_tail("q") == "c"
        assert c.pop_tail("q") is None

    def test_move_tail_moves_to_destination_head(self):
        c = MemoryQueueClient()
        c.push_head("src", "first")
        c.push_head("src", "second")
        c.push_head("dst", "existing")
        assert c.move_tail("src", "dst") == "first"
        assert c.items("src") == ["second"]
        assert c.items("dst") == ["first", "existing"]

    def test_move_tail_on_empty_returns_none(self):
        c = MemoryQueueClient()
        assert c.move_tail("src", "dst") is None
        assert c.length("dst") == 0

    def test_blocking_move_times_out(self):
        c = MemoryQueueClient()
        t0 = time.monotonic()
        assert c.blocking_move_tail("src", "dst", 0.1) is None
        assert time.monotonic() - t0 >= 0.09

    def test_blocking_move_wakes_on_push(self):
        c = MemoryQueueClient()
        result = []

        def consumer():
            result.append(c.blocking_move_tail("src", "dst", 5))

        t = threading.Thread(target=consumer)
        t.start()
        time.sleep(0.05)
        c.push_head("src", "late")
        t.join(timeout=2)
        assert result == ["late"]
        assert c.items("dst") == ["late"]

    def test_concurrent_consumers_each_get_distinct_entries(self):
        c = MemoryQueueClient()
        for i in range(100):
            c.push_head("src", f"e{i}")
        taken = []
        lock = threading.Lock()

        def consumer(n):
            while True:
                v = c.blocking_move_tail("src", f"dst{n}", 0.05)
                if v is None:
                    return
                with lock:
                    taken.append(v)

        threads = [threading.Thread(target=consumer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(taken) == sorted(f"e{i}" for i in range(100))
        assert sum(c.length(f"dst{n}") for n in range(4)) == 100

    def test_remove_value_removes_one_occurrence(self):
        c = MemoryQueueClient()
        for v in ("x", "y", "x"):
            c.push_head("q", v)
        assert c.remove_value("q", "x") == 1
        assert c.items("q") == ["y", "x"]

    def test_remove_value_negative_count_starts_at_tail(self):
        c = MemoryQueueClient()
        for v in ("x", "y", "x", "z"):
            c.push_head("q", v)
        # head -> tail: z x y x
        assert c.remove_value("q", "x", -1) == 1
        assert c.items("q") == ["z", "x", "y"]

    def test_remove_value_zero_removes_all(self):
        c = MemoryQueueClient()
        for v in ("x", "y", "x"):
            c.push_head("q", v)
        assert c.remove_value("q", "x", 0) == 2
        assert c.items("q") == ["y"]

    def test_remove_missing_value(self):
        c = MemoryQueueClient()
        assert c.remove_value("q", "nope") == 0


class TestMemorySets:
    def test_add_member_reports_new(self):
        c = MemoryQueueClient()
        assert c.add_member("s", "a") is True
        assert c.add_member("s", "a") is False
        assert c.is_member("s", "a")
        assert c.members("s") == {"a"}

    def test_remove_member(self):
        c = MemoryQueueClient()
        c.add_member("s", "a")
        c.remove_member("s", "a")
        c.remove_member("s", "missing")
        assert not c.is_member("s", "a")

    def test_satisfies_protocol(self):
        assert isinstance(MemoryQueueClient(), QueueClient)


# ── RedisQueueClient ─────────────────────────────────────────────────

class TestRedisClient:
    def _client(self):
        r = MagicMock()
        return RedisQueueClient(r), r

    def test_blocking_move_uses_blmove_right_left(self):
        c, r = self._client()
        r.blmove.return_value = "entry"
        assert c.blocking_move_tail("logs", "logs:in-processing", 1) == "entry"
        r.blmove.assert_called_once_with("logs", "logs:in-processing", 1, src="RIGHT", dest="LEFT")

    def test_move_tail_uses_lmove(self):
        c, r = self._client()
        r.lmove.return_value = None
        assert c.move_tail("a", "b") is None
        r.lmove.assert_called_once_with("a", "b", src="RIGHT", dest="LEFT")

    def test_remove_value_uses_lrem(self):
        c, r = self._client()
        r.lrem.return_value = 1
        assert c.remove_value("q", "v") == 1
        r.lrem.assert_called_once_with("q", 1, "v")

    def test_push_pop_length_items(self):
        c, r = self._client()
        r.rpop.return_value = "v"
        r.llen.return_value = 3
        r.lrange.return_value = ["a", "b"]
        c.push_head("q", "v")
        r.lpush.assert_called_once_with("q", "v")
        assert c.pop_tail("q") == "v"
        assert c.length("q") == 3
        assert c.items("q") == ["a", "b"]
        r.lrange.assert_called_once_with("q", 0, -1)

    def test_set_operations(self):
        c, r = self._client()
        r.sadd.return_value = 0
        r.sismember.return_value = 1
        r.smembers.return_value = {"a"}
        assert c.add_member("s", "a") is False
        assert c.is_member("s", "a") is True
        assert c.members("s") == {"a"}
        c.remove_member("s", "a")
        r.srem.assert_called_once_with("s", "a")

    def test_redis_errors_are_wrapped(self):
        c, r = self._client()
        r.blmove.side_effect = redis.exceptions.ConnectionError("down")
        with pytest.raises(QueueClientError):
            c.blocking_move_tail("a", "b", 1)

    def test_ping_false_on_error(self):
        c, r = self._client()
        r.ping.side_effect = redis.exceptions.ConnectionError("down")
        assert c.ping() is False


class TestConnect:
    def test_memory_url(self):
        assert isinstance(connect("memory://"), MemoryQueueClient)

    def test_redis_url(self):
        c = connect("redis://localhost:6379/0")
        assert isinstance(c, RedisQueueClient)
