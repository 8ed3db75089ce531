"""
Concurrency-bounded dispatcher for LLM work units.

At most ``max_concurrent`` units run at once; the rest wait in a FIFO queue.
After each unit finishes (successfully or not) the dispatcher pauses for
``delay`` seconds before starting the next queued unit. Units start in
submission order but may finish in any order.

All bookkeeping happens on the event loop thread, so no lock is needed.
"""
import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, Set, Tuple, TypeVar

from screening.utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
Unit = Callable[[], Awaitable[T]]


class ConcurrencyDispatcher:

    def __init__(self, max_concurrent: int = 5, delay: float = 0.05):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.max_concurrent = max_concurrent
        self.delay = delay
        self.running = 0
        self.peak_running = 0
        self._queue: Deque[Tuple[Unit, asyncio.Future]] = deque()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def execute(self, unit: Unit) -> T:
        """Queue ``unit`` and wait for its own result (or exception)."""
        future = asyncio.get_running_loop().create_future()
        self._queue.append((unit, future))
        self._drain()
        return await future

    def _drain(self) -> None:
        while self.running < self.max_concurrent and self._queue:
            unit, future = self._queue.popleft()
            if future.cancelled():
                # nobody is waiting for this unit any more
                continue
            self.running += 1
            self.peak_running = max(self.peak_running, self.running)
            task = asyncio.ensure_future(self._run(unit, future))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, unit: Unit, future: asyncio.Future) -> None:
        try:
            result = await unit()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            logger.debug(f"Dispatched unit failed: {exc}")
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self.running -= 1
            asyncio.get_running_loop().call_later(self.delay, self._drain)
