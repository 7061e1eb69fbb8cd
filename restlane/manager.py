"""Dispatch queue and the manager wiring executor, buckets and retries together."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Optional, Set, Union

import httpx

from .attempt import ExecutionAttempt
from .config import RuntimeSettings, get_settings
from .ratelimit import RateLimitBucket, RateLimiter
from .rest import RequestExecutor
from .scheduler import RetryScheduler
from .schemas import RequestDescriptor

QueueItem = Union[RateLimitBucket, ExecutionAttempt]


class DispatchQueue:
    """FIFO of pending work; retries re-enter at the front."""

    def __init__(self) -> None:
        self._items: Deque[QueueItem] = deque()
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._items)

    def push_front(self, item: QueueItem) -> None:
        self._items.appendleft(item)
        self._ready.set()

    def push_back(self, item: QueueItem) -> None:
        self._items.append(item)
        self._ready.set()

    async def get(self) -> QueueItem:
        while not self._items:
            self._ready.clear()
            await self._ready.wait()
        return self._items.popleft()


class APIManager:
    """Accepts descriptors, queues them per bucket and runs the dispatch loop."""

    def __init__(self, settings: Optional[RuntimeSettings] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings or get_settings()
        self.queue = DispatchQueue()
        self.ratelimits = RateLimiter()
        self.scheduler = RetryScheduler(self.queue)
        self.executor = RequestExecutor(self.settings, self.scheduler, client=client)
        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    async def __aenter__(self) -> "APIManager":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def add(self, descriptor: RequestDescriptor) -> asyncio.Future:
        attempt = ExecutionAttempt(descriptor)
        bucket = self.ratelimits.for_route(descriptor.route)
        self.queue.push_back(bucket.push(attempt))
        logging.debug(f'[manager] Queued item "{descriptor.route}" in bucket "{bucket.key}"')
        return attempt.future

    async def request(self, method: str, route: str, **options: Any) -> Any:
        descriptor = RequestDescriptor(method=method, route=route, **options)
        return await self.add(descriptor)

    def start(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.get_running_loop().create_task(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        while True:
            item = await self.queue.get()
            task = asyncio.get_running_loop().create_task(self._process(item))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _process(self, item: QueueItem) -> None:
        if isinstance(item, ExecutionAttempt):
            await self.executor.execute(item)
            return

        async with item.busy:
            attempt = await item.take()
            if attempt is None:
                return
            await self.executor.execute(attempt, item)

    async def aclose(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None
        await self.scheduler.aclose()
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.executor.aclose()
