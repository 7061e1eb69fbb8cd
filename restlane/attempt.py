"""Per-submission state owned by the executor."""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from .schemas import RequestDescriptor


class ExecutionAttempt:
    """One logical request, possibly spanning several HTTP round trips.

    ``future`` is the only thing the caller waits on. It settles exactly
    once; anything arriving after that (a late retry after cancellation,
    for instance) is dropped.
    """

    def __init__(self, descriptor: RequestDescriptor, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.descriptor = descriptor
        self.retry_count = 0
        self.future: asyncio.Future = (loop or asyncio.get_running_loop()).create_future()

    @property
    def route(self) -> str:
        return self.descriptor.route

    @property
    def done(self) -> bool:
        return self.future.done()

    def resolve(self, value: Any) -> bool:
        if self.future.done():
            return False
        self.future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True

    def cancel(self) -> bool:
        return self.future.cancel()

    def __repr__(self) -> str:
        return (
            f"ExecutionAttempt({self.descriptor.method.value} {self.route!r}, "
            f"retries={self.retry_count}, done={self.done})"
        )
