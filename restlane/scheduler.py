"""Timer ownership for delayed re-submission of attempts."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

from .attempt import ExecutionAttempt
from .contracts import BucketProtocol, QueueProtocol
from .errors import RequestFailed


@dataclass(frozen=True)
class RetryRequested:
    attempt: ExecutionAttempt
    delay: float
    bucket: Optional[BucketProtocol] = None


class RetryScheduler:
    """Hands attempts back to the bucket/queue once their delay elapses."""

    def __init__(self, queue: QueueProtocol) -> None:
        self._queue = queue
        self._timers: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._timers)

    def schedule(self, command: RetryRequested) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._fire(command))
        self._timers.add(task)
        future = command.attempt.future

        # A cancelled caller future must not leave a live timer behind
        def cancel_timer(_: asyncio.Future) -> None:
            task.cancel()

        def forget(finished: asyncio.Task) -> None:
            self._timers.discard(finished)
            future.remove_done_callback(cancel_timer)

        future.add_done_callback(cancel_timer)
        task.add_done_callback(forget)
        return task

    async def _fire(self, command: RetryRequested) -> None:
        if command.delay > 0:
            await asyncio.sleep(command.delay)
        try:
            await self.requeue(command.attempt, command.bucket)
        except Exception as exc:
            logging.error(f'[retry] Could not requeue item "{command.attempt.route}": {exc!r}')
            error = RequestFailed(command.attempt.route, str(exc) or type(exc).__name__)
            error.__cause__ = exc
            command.attempt.reject(error)

    async def requeue(self, attempt: ExecutionAttempt, bucket: Optional[BucketProtocol] = None) -> bool:
        if attempt.done:
            logging.debug(f'[retry] Dropping requeue of finished item "{attempt.route}"')
            return False
        if bucket is not None:
            self._queue.push_front(await bucket.unshift(attempt))
        else:
            self._queue.push_front(attempt)
        logging.debug(f'[retry] Requeued item "{attempt.route}" at the front (retries={attempt.retry_count})')
        return True

    async def aclose(self) -> None:
        timers = list(self._timers)
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
