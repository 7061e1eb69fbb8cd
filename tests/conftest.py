from typing import Any, List, Mapping, Tuple

import httpx
import pytest

from restlane.attempt import ExecutionAttempt
from restlane.config import RuntimeSettings
from restlane.scheduler import RetryRequested, RetryScheduler


class RecordingQueue:
    def __init__(self) -> None:
        self.events: List[Tuple[str, Any]] = []

    def push_front(self, item: Any) -> None:
        self.events.append(("front", item))

    def push_back(self, item: Any) -> None:
        self.events.append(("back", item))


class RecordingBucket:
    def __init__(self) -> None:
        self.observed: List[Tuple[Mapping[str, str], bool]] = []
        self.unshifted: List[ExecutionAttempt] = []

    async def observe(self, headers: Mapping[str, str], reaction: bool = False) -> None:
        self.observed.append((headers, reaction))

    async def unshift(self, attempt: ExecutionAttempt) -> "RecordingBucket":
        self.unshifted.append(attempt)
        return self


class RecordingScheduler(RetryScheduler):
    """Keeps scheduled retries instead of arming timers."""

    def __init__(self, queue) -> None:
        super().__init__(queue)
        self.commands: List[RetryRequested] = []

    def schedule(self, command: RetryRequested):
        self.commands.append(command)
        return None


def scripted_client(*responses: Any) -> Tuple[httpx.AsyncClient, List[httpx.Request]]:
    """AsyncClient whose transport replays ``responses`` in order."""

    seen: List[httpx.Request] = []
    pending = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = pending.pop(0) if len(pending) > 1 else pending[0]
        if callable(item):
            item = item(request)
        if isinstance(item, Exception):
            raise item
        # the last response may be replayed, so hand out a fresh copy each time
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), seen


@pytest.fixture
def settings() -> RuntimeSettings:
    return RuntimeSettings(token="secret", request_error_delay=0.0, request_max_retries=0)
