"""Single-lane scheduler for calls to the generative capability.

Every external call goes through one worker task that drains a FIFO queue, so
at most one call is in flight at any instant and calls finish in submission
order. Each call runs under the transient-failure retry policy. Results can be
cached by key for a fixed TTL.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from ..utils.cache import Cache
from ..utils.errors import is_transient
from ..utils.logger import get_logger
from ..utils.retry import retry_async

logger = get_logger(__name__)

Producer = Callable[[], Awaitable[Any]]


class TaskScheduler:
    """FIFO single-worker queue with TTL cache and bounded retry."""

    def __init__(
        self,
        cache: Optional[Cache] = None,
        max_retries: int = 2,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize scheduler.

        Args:
            cache: Result cache (a 5 minute TTL cache is created if omitted)
            max_retries: Retries after the first attempt, transient failures only
            initial_delay: Delay before the first retry, in seconds
            backoff_factor: Delay multiplier per retry
            sleep: Awaitable sleep used between retries
        """
        self.cache = cache if cache is not None else Cache()
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self._sleep = sleep

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        """Tasks waiting behind the one in flight."""
        return self._queue.qsize() if self._queue is not None else 0

    def _ensure_worker(self):
        loop = asyncio.get_running_loop()
        if self._worker is None or self._worker.done() or self._worker.get_loop() is not loop:
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._drain(self._queue))
            logger.debug("Scheduler worker started")

    async def _drain(self, queue: asyncio.Queue):
        while True:
            producer, future = await queue.get()
            try:
                result = await self._with_retry(producer)
            except asyncio.CancelledError:
                # Worker stopped mid-task
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                queue.task_done()

    async def _with_retry(self, producer: Producer) -> Any:
        policy = retry_async(
            max_attempts=self.max_retries + 1,
            backoff_factor=self.backoff_factor,
            initial_delay=self.initial_delay,
            retry_if=is_transient,
            sleep=self._sleep,
        )
        return await policy(producer)()

    async def enqueue(self, producer: Producer) -> Any:
        """
        Run ``producer`` once every earlier task has finished.

        There is no cancellation: once queued, the producer runs to completion
        (or exhausts its retries) even if the caller stops waiting.

        Raises:
            Exception: The producer's last failure, unchanged
        """
        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((producer, future))

        logger.debug("Task queued", extra={"pending": self._queue.qsize()})
        return await future

    async def cached_run(self, key: str, producer: Producer) -> Any:
        """
        Return the cached result for ``key`` or run ``producer`` through the queue.

        The lookup happens before queueing, so two identical calls submitted
        before either completes may both miss and both run.
        """
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit", extra={"cache_key": key})
            return cached

        logger.info("Cache miss, running task", extra={"cache_key": key})
        result = await self.enqueue(producer)
        self.cache.set(key, result)
        return result

    async def close(self):
        """Stop the worker. Callers still waiting on a result are cancelled."""
        worker, queue = self._worker, self._queue
        if worker is not None and not worker.done():
            worker.cancel()
            if worker.get_loop() is asyncio.get_running_loop():
                try:
                    await worker
                except asyncio.CancelledError:
                    pass

        dropped = 0
        while queue is not None and not queue.empty():
            _, future = queue.get_nowait()
            if not future.done():
                future.cancel()
                dropped += 1

        self._worker = None
        self._queue = None
        logger.info("Scheduler closed", extra={"dropped_tasks": dropped})
