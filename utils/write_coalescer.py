"""
Debounced write-through queue.

Collects state snapshots and writes only the latest one once the submitter has
been quiet for `delay` seconds. A burst that never goes quiet is still written
at most `max_delay` seconds after its first submission.

Contract:
- latest state wins: intermediate snapshots of a burst are never written
- bounded delay: pending state is written within max_delay of the first submit
- writes never overlap and complete in submission order
- failed writes are retried with exponential backoff, then logged and dropped;
  a newer pending snapshot supersedes a failing one

Usage:
    coalescer = WriteCoalescer(lambda doc: store.set(path, doc, merge=True), delay=0.5)
    coalescer.submit({"items": [...]})
    ...
    await coalescer.close()  # flushes whatever is still pending
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)

_EMPTY = object()


class WriteCoalescer:

    def __init__(
        self,
        flush: Callable[[Any], Awaitable[Any]],
        delay: float,
        max_delay: float | None = None,
        max_retries: int = 3,
        retry_delay_base: float = 0.5,
        name: str = "write",
    ):
        """
        Args:
            flush: Coroutine function performing the actual write
            delay: Quiet period in seconds before a write happens
            max_delay: Upper bound in seconds between first submit and write (None = unbounded)
            max_retries: Retries per snapshot after the first failed attempt
            retry_delay_base: Base delay for exponential backoff between retries
            name: Label used in log messages
        """
        self._flush = flush
        self.delay = delay
        self.max_delay = max_delay
        self.max_retries = max_retries
        self.retry_delay_base = retry_delay_base
        self.name = name

        self._pending: Any = _EMPTY
        self._first_submit_at: float | None = None
        self._last_submit_at = 0.0
        self._worker: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()
        self._closed = False

        # Counters for observability and tests
        self.write_count = 0
        self.failed_count = 0

    @property
    def has_pending(self) -> bool:
        return self._pending is not _EMPTY

    @property
    def is_closed(self) -> bool:
        return self._closed

    def submit(self, state: Any) -> None:
        """Queue state as the latest snapshot and (re)start the quiet period."""
        if self._closed:
            logger.warning(f"[{self.name}] Submit after close ignored")
            return
        loop = asyncio.get_running_loop()
        now = loop.time()
        if self._pending is _EMPTY:
            self._first_submit_at = now
        self._pending = state
        self._last_submit_at = now
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run())

    async def flush(self) -> None:
        """Write pending state now and wait for any in-flight write to finish."""
        if self._pending is not _EMPTY:
            await self._write(self._take())
        async with self._write_lock:
            pass

    def cancel(self) -> None:
        """Drop pending state without writing it."""
        self._take()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()

    async def close(self) -> None:
        """Flush pending state and stop accepting new submissions."""
        if self._closed:
            return
        await self.flush()
        self._closed = True
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()

    def _deadline(self) -> float:
        deadline = self._last_submit_at + self.delay
        if self.max_delay is not None and self._first_submit_at is not None:
            deadline = min(deadline, self._first_submit_at + self.max_delay)
        return deadline

    def _take(self) -> Any:
        state = self._pending
        self._pending = _EMPTY
        self._first_submit_at = None
        return state

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._pending is not _EMPTY:
            remaining = self._deadline() - loop.time()
            if remaining > 0:
                await asyncio.sleep(remaining)
                continue
            await self._write(self._take())

    async def _write(self, state: Any) -> bool:
        async with self._write_lock:
            for attempt in range(self.max_retries + 1):
                try:
                    await self._flush(state)
                    self.write_count += 1
                    logger.debug(f"[{self.name}] Write #{self.write_count} completed")
                    return True
                except Exception as e:
                    if self._pending is not _EMPTY:
                        logger.warning(f"[{self.name}] Write failed, superseded by newer state: {e}")
                        self.failed_count += 1
                        return False
                    if attempt == self.max_retries:
                        logger.error(f"[{self.name}] Write failed after {attempt + 1} attempts, dropping: {e}")
                        self.failed_count += 1
                        return False
                    delay = TransactionManager.backoff_delay(attempt, self.retry_delay_base)
                    logger.warning(f"[{self.name}] Write attempt {attempt + 1} failed, retrying in {delay:.2f}s: {e}")
                    await asyncio.sleep(delay)
        return False
