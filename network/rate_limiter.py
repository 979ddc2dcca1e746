"""
Sliding-window request scheduler for the ledger API.

Every outbound read goes through one shared ``RateLimiter``: requests are
queued FIFO, admitted one at a time, and at most ``max_requests`` are admitted
in any ``window_seconds`` interval. The admission key only labels log lines;
it never affects ordering or budget.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Tuple

from monitoring.metrics import (
    rate_limiter_queue_length,
    rate_limiter_waits_total,
    rate_limiter_window_requests,
)

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


class RateLimiter:
    """Single-queue sliding-window limiter with one operation in flight"""

    def __init__(
        self,
        max_requests: int = 40,
        window_seconds: float = 60.0,
        request_delay: float = 0.1,
        safety_margin: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.request_delay = request_delay
        self.safety_margin = safety_margin
        self.clock = clock
        self.sleep = sleep

        self.timestamps: Deque[float] = deque()
        self.queue: Deque[Tuple[str, Operation, asyncio.Future]] = deque()
        self.processing = False
        self._drain_task = None

    def _prune(self, now: float):
        window_start = now - self.window_seconds
        while self.timestamps and self.timestamps[0] <= window_start:
            self.timestamps.popleft()

    def _can_admit(self, now: float) -> bool:
        self._prune(now)
        return len(self.timestamps) < self.max_requests

    def _wait_time(self, now: float) -> float:
        if not self.timestamps:
            return 0.0
        window_start = now - self.window_seconds
        return max(0.0, self.timestamps[0] - window_start)

    def _abandon_queue(self):
        """Cancel every caller still waiting once the drain cannot continue"""
        while self.queue:
            key, _, future = self.queue.popleft()
            if not future.done():
                future.cancel()
            logger.debug(f"Abandoned queued request: {key}")
        rate_limiter_queue_length.set(0)

    async def _process_queue(self):
        try:
            while self.queue:
                now = self.clock()
                if not self._can_admit(now):
                    wait = self._wait_time(now) + self.safety_margin
                    rate_limiter_waits_total.inc()
                    logger.warning(
                        f"Rate limit reached ({len(self.timestamps)}/{self.max_requests}), "
                        f"waiting {wait:.2f}s"
                    )
                    await self.sleep(wait)
                    continue

                key, operation, future = self.queue.popleft()
                rate_limiter_queue_length.set(len(self.queue))
                if future.done():
                    # Caller gave up while queued
                    logger.debug(f"Skipping cancelled request: {key}")
                    continue

                self.timestamps.append(now)
                rate_limiter_window_requests.set(len(self.timestamps))
                logger.debug(f"Admitted request: {key}")

                try:
                    result = await operation()
                except asyncio.CancelledError:
                    if not future.done():
                        future.cancel()
                    if asyncio.current_task().cancelling():
                        raise
                    logger.warning(f"Request cancelled by its operation: {key}")
                except Exception as e:
                    if not future.done():
                        future.set_exception(e)
                except BaseException:
                    if not future.done():
                        future.cancel()
                    raise
                else:
                    if not future.done():
                        future.set_result(result)

                await self.sleep(self.request_delay)
        except BaseException:
            self._abandon_queue()
            raise
        finally:
            self.processing = False

    async def execute(self, admission_key: str, operation: Operation) -> Any:
        """Queue ``operation`` and return its result once admitted and run"""
        future = asyncio.get_running_loop().create_future()
        self.queue.append((admission_key, operation, future))
        rate_limiter_queue_length.set(len(self.queue))

        if not self.processing:
            self.processing = True
            self._drain_task = asyncio.create_task(self._process_queue())

        return await future

    def get_status(self) -> Dict[str, Any]:
        now = self.clock()
        self._prune(now)
        active = len(self.timestamps)
        return {
            "active_requests": active,
            "max_requests": self.max_requests,
            "queue_length": len(self.queue),
            "can_make_request": active < self.max_requests,
        }
