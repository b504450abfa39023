"""
Log Watcher - Cancellable polling tail of an operation log.

The watcher polls a log source on a fixed interval, diffs each snapshot
against what it already delivered, and hands new lines to the UI loop in
bounded batches. It never touches UI state: every result leaves through
the `emit` callback as a message tagged with the watcher's generation.

Lifecycle:
- First successful poll delivers the full buffer.
- Growth of the same operation delivers only the new tail.
- A different operation id replaces the buffer, behind a separator.
- Fetch failures are retried a bounded number of times with a fixed
  delay; after that the stream ends with the error.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from .. import config
from ..core.cancel import CancelToken
from ..core.errors import SourceError
from ..core.result import Result
from .logs import LogSnapshot

logger = logging.getLogger(__name__)

NEW_OPERATION_SEPARATOR = ("", "═══ new operation ═══", "")

Fetch = Callable[[], Awaitable[Result[LogSnapshot, SourceError]]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class LogBatch:
    """New log lines. When `replace` is set they replace the whole buffer."""
    generation: int
    lines: Tuple[str, ...]
    label: str = ""
    replace: bool = False


@dataclass(frozen=True)
class LogRetrying:
    """A poll failed and will be retried."""
    generation: int
    attempt: int
    limit: int
    error: str


@dataclass(frozen=True)
class LogStreamEnded:
    """The watcher stopped. `error` is set when retries were exhausted."""
    generation: int
    error: Optional[str] = None


def diff_lines(
    previous_operation: str,
    previous: Sequence[str],
    snapshot: LogSnapshot,
) -> Optional[Tuple[List[str], bool]]:
    """
    Work out what to deliver for a new snapshot.

    Returns:
        Optional[Tuple[List[str], bool]]: (lines, replace), or None when
        there is nothing new.
    """
    lines = list(snapshot.lines)
    if not lines:
        return None
    if previous_operation and snapshot.operation_id != previous_operation:
        return list(NEW_OPERATION_SEPARATOR) + lines, True
    if not previous:
        return lines, False
    if len(lines) > len(previous) and lines[: len(previous)] == list(previous):
        return lines[len(previous):], False
    if lines != list(previous):
        return lines, True
    return None


class LineBatcher:
    """
    Buffers pending lines and cuts them into batches of at most `size`.

    Only the first batch cut from a replacing delivery carries `replace`.
    """

    def __init__(self, size: int):
        self.size = size
        self._pending: List[str] = []
        self._replace = False
        self._label = ""

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def full(self) -> bool:
        return len(self._pending) >= self.size

    def add(self, lines: Sequence[str], replace: bool, label: str) -> None:
        if replace:
            self._pending = []
            self._replace = True
        self._pending.extend(lines)
        self._label = label

    def take(self, generation: int) -> LogBatch:
        chunk = tuple(self._pending[: self.size])
        self._pending = self._pending[self.size:]
        batch = LogBatch(generation=generation, lines=chunk, label=self._label, replace=self._replace)
        self._replace = False
        return batch


class LogWatcher:
    """
    Polls `fetch` until cancelled or until retries run out.

    Args:
        fetch: Coroutine factory returning the current log snapshot.
        emit: Receives LogBatch, LogRetrying and LogStreamEnded messages.
        token: Cancellation token; its generation tags every message.
        sleep: Injected for tests; defaults to asyncio.sleep.
    """

    def __init__(
        self,
        fetch: Fetch,
        emit: Callable[[object], None],
        token: CancelToken,
        poll_interval: float = config.LOG_POLL_INTERVAL,
        retry_limit: int = config.LOG_RETRY_LIMIT,
        retry_delay: float = config.LOG_RETRY_DELAY,
        batch_interval: float = config.LOG_BATCH_INTERVAL,
        batch_size: int = config.LOG_BATCH_SIZE,
        sleep: Sleep = asyncio.sleep,
    ):
        self.fetch = fetch
        self.emit = emit
        self.token = token
        self.poll_interval = poll_interval
        self.retry_limit = retry_limit
        self.retry_delay = retry_delay
        self.batch_interval = batch_interval
        self._sleep = sleep
        self._batcher = LineBatcher(batch_size)
        self._operation = ""
        self._delivered: List[str] = []

    def _send(self, message: object) -> bool:
        if self.token.cancelled:
            return False
        self.emit(message)
        return True

    async def _poll(self) -> Optional[LogSnapshot]:
        """Fetch once, retrying transient failures. None means give up."""
        failures = 0
        while True:
            try:
                result = await self.fetch()
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.error(f"Log fetch raised: {message}")
            else:
                if result.is_ok():
                    return result.value
                message = str(result.error)

            failures += 1
            if failures > self.retry_limit:
                logger.warning(f"Log stream giving up after {self.retry_limit} retries: {message}")
                self._send(LogStreamEnded(generation=self.token.generation, error=message))
                return None

            logger.debug(f"Log fetch failed (attempt {failures}/{self.retry_limit}): {message}")
            if not self._send(LogRetrying(self.token.generation, failures, self.retry_limit, message)):
                return None
            await self._sleep(self.retry_delay)

    def _apply(self, snapshot: LogSnapshot) -> None:
        change = diff_lines(self._operation, self._delivered, snapshot)
        if change is not None:
            lines, replace = change
            self._batcher.add(lines, replace, snapshot.label)
        if snapshot.lines:
            self._operation = snapshot.operation_id
            self._delivered = list(snapshot.lines)

    async def _drain(self) -> None:
        """Flush full batches at once and a partial one after the batch interval."""
        while self._batcher.pending:
            if not self._batcher.full:
                await self._sleep(self.batch_interval)
            if not self._send(self._batcher.take(self.token.generation)):
                return

    async def run(self) -> None:
        """Poll until cancelled. Cancellation surfaces at the next await."""
        logger.debug(f"Log watcher {self.token.generation} started")
        while not self.token.cancelled:
            snapshot = await self._poll()
            if snapshot is None:
                return
            self._apply(snapshot)
            await self._drain()
            await self._sleep(self.poll_interval)
        logger.debug(f"Log watcher {self.token.generation} cancelled")
