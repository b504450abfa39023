"""Unit tests for the cancellable log watcher."""

import asyncio
from unittest.mock import AsyncMock

from planscope.core.cancel import CancelToken
from planscope.core.errors import SourceError
from planscope.core.result import Err, Ok
from planscope.streaming.logs import LogSnapshot
from planscope.streaming.watcher import (
    NEW_OPERATION_SEPARATOR,
    LineBatcher,
    LogBatch,
    LogRetrying,
    LogStreamEnded,
    LogWatcher,
    diff_lines,
)

POLL = 3.0
RETRY = 2.0
BATCH = 0.1


def snap(operation_id, *lines, label=""):
    return Ok(LogSnapshot(operation_id=operation_id, lines=tuple(lines), label=label))


def run_watcher(results, polls=1, retry_limit=3, batch_size=200):
    """Run a watcher over canned fetch results until `polls` poll intervals elapse."""
    token = CancelToken()
    emitted = []
    sleeps = []

    async def sleep(delay):
        sleeps.append(delay)
        if delay == POLL and sleeps.count(POLL) >= polls:
            token.cancel()

    watcher = LogWatcher(
        AsyncMock(side_effect=results),
        emitted.append,
        token,
        poll_interval=POLL,
        retry_limit=retry_limit,
        retry_delay=RETRY,
        batch_interval=BATCH,
        batch_size=batch_size,
        sleep=sleep,
    )
    asyncio.run(watcher.run())
    return emitted, sleeps, token


class TestDiffLines:
    def test_first_delivery(self):
        assert diff_lines("", [], LogSnapshot("x", ("a", "b"))) == (["a", "b"], False)

    def test_growth_appends_tail(self):
        assert diff_lines("x", ["a"], LogSnapshot("x", ("a", "b"))) == (["b"], False)

    def test_unchanged(self):
        assert diff_lines("x", ["a"], LogSnapshot("x", ("a",))) is None

    def test_rewritten_same_operation_replaces(self):
        assert diff_lines("x", ["a", "b"], LogSnapshot("x", ("c",))) == (["c"], True)

    def test_new_operation_replaces_behind_separator(self):
        lines, replace = diff_lines("x", ["a"], LogSnapshot("y", ("z",)))
        assert replace is True
        assert lines == list(NEW_OPERATION_SEPARATOR) + ["z"]

    def test_empty_snapshot(self):
        assert diff_lines("x", ["a"], LogSnapshot("y")) is None


class TestLineBatcher:
    def test_only_first_chunk_replaces(self):
        batcher = LineBatcher(2)
        batcher.add(["a", "b", "c"], replace=True, label="L")
        first = batcher.take(7)
        second = batcher.take(7)
        assert first == LogBatch(7, ("a", "b"), "L", True)
        assert second == LogBatch(7, ("c",), "L", False)
        assert batcher.pending == 0


class TestLogWatcher:
    def test_operation_switch_replaces_buffer(self):
        """Moving from operation X to Y yields a full replace with a separator."""
        emitted, _, token = run_watcher(
            [snap("X", "x1", "x2", label="X (apply)"), snap("Y", "y1", label="Y (apply)")],
            polls=2,
        )
        assert emitted == [
            LogBatch(token.generation, ("x1", "x2"), "X (apply)", False),
            LogBatch(token.generation, ("", "═══ new operation ═══", "", "y1"), "Y (apply)", True),
        ]
        assert not any(line.startswith("x") for line in emitted[-1].lines)

    def test_growth_sends_only_new_lines(self):
        emitted, sleeps, _ = run_watcher([snap("X", "a"), snap("X", "a", "b"), snap("X", "a", "b")], polls=3)
        assert [batch.lines for batch in emitted] == [("a",), ("b",)]
        assert sleeps.count(POLL) == 3

    def test_retries_then_gives_up(self):
        failure = Err(SourceError("logs", "connection reset"))
        emitted, sleeps, token = run_watcher([failure, failure, failure], retry_limit=2)
        assert emitted == [
            LogRetrying(token.generation, 1, 2, "logs: connection reset"),
            LogRetrying(token.generation, 2, 2, "logs: connection reset"),
            LogStreamEnded(token.generation, "logs: connection reset"),
        ]
        assert sleeps == [RETRY, RETRY]

    def test_recovers_after_retry(self):
        emitted, sleeps, _ = run_watcher([Err(SourceError("logs", "blip")), snap("X", "a")])
        assert isinstance(emitted[0], LogRetrying)
        assert emitted[1].lines == ("a",)
        assert sleeps == [RETRY, BATCH, POLL]

    def test_raising_fetch_is_retried(self):
        emitted, sleeps, token = run_watcher([ConnectionError("socket closed"), snap("X", "a")])
        assert emitted[0] == LogRetrying(token.generation, 1, 3, "socket closed")
        assert emitted[1].lines == ("a",)
        assert sleeps == [RETRY, BATCH, POLL]

    def test_raising_fetch_ends_stream_after_retries(self):
        emitted, _, token = run_watcher([RuntimeError(), RuntimeError()], retry_limit=1)
        assert emitted[-1] == LogStreamEnded(token.generation, "RuntimeError")

    def test_full_batches_flush_without_waiting(self):
        emitted, sleeps, _ = run_watcher([snap("X", "1", "2", "3", "4", "5")], batch_size=2)
        assert [batch.lines for batch in emitted] == [("1", "2"), ("3", "4"), ("5",)]
        assert sleeps == [BATCH, POLL]

    def test_cancelled_token_emits_nothing(self):
        token = CancelToken()
        token.cancel()
        emitted = []
        fetch = AsyncMock()
        watcher = LogWatcher(fetch, emitted.append, token, sleep=AsyncMock())
        asyncio.run(watcher.run())
        assert emitted == []
        fetch.assert_not_awaited()

    def test_cancel_during_batch_wait_drops_batch(self):
        token = CancelToken()
        emitted = []

        async def sleep(delay):
            token.cancel()

        watcher = LogWatcher(AsyncMock(return_value=snap("X", "a")), emitted.append, token, sleep=sleep)
        asyncio.run(watcher.run())
        assert emitted == []
