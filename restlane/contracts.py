"""Collaborator protocols the executor depends on."""
from __future__ import annotations

from typing import Any, Mapping, Protocol

from .attempt import ExecutionAttempt


class BucketProtocol(Protocol):
    async def observe(self, headers: Mapping[str, str], reaction: bool = False) -> None:
        ...

    async def unshift(self, attempt: ExecutionAttempt) -> Any:
        ...


class QueueProtocol(Protocol):
    def push_front(self, item: Any) -> None:
        ...

    def push_back(self, item: Any) -> None:
        ...
