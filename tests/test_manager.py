import asyncio
from datetime import datetime

import httpx
import pytest

from restlane.config import RuntimeSettings
from restlane.errors import APIError, MaxRetriesReached, RequestFailed
from restlane.manager import APIManager, DispatchQueue
from restlane.schemas import RequestDescriptor

from conftest import scripted_client


def spy_requeues(manager: APIManager) -> list:
    seen = []
    original = manager.scheduler.requeue

    async def requeue(attempt, bucket=None):
        seen.append((attempt.route, attempt.retry_count))
        return await original(attempt, bucket)

    manager.scheduler.requeue = requeue
    return seen


async def test_dispatch_queue_front_and_back():
    queue = DispatchQueue()
    queue.push_back("b")
    queue.push_back("c")
    queue.push_front("a")
    assert [await queue.get() for _ in range(3)] == ["a", "b", "c"]


async def test_dispatch_queue_get_waits_for_items():
    queue = DispatchQueue()
    waiter = asyncio.create_task(queue.get())
    await asyncio.sleep(0)
    assert not waiter.done()
    queue.push_back("x")
    assert await asyncio.wait_for(waiter, 1) == "x"


async def test_rate_limited_message_resolves_after_one_requeue(settings):
    client, seen = scripted_client(
        httpx.Response(429, json={"retry_after": 0.05}, headers={"Retry-After": "0.05"}),
        httpx.Response(200, json={"id": "9"}),
    )
    async with APIManager(settings, client=client) as manager:
        requeues = spy_requeues(manager)
        result = await asyncio.wait_for(
            manager.request("POST", "channels/1/messages", body={"content": "hi"}), 2
        )
    assert result == {"id": "9"}
    assert requeues == [("channels/1/messages", 0)]
    assert len(seen) == 2


async def test_server_errors_exhaust_retry_budget():
    settings = RuntimeSettings(request_max_retries=2, request_error_delay=0.0)
    client, seen = scripted_client(httpx.Response(503, json={"message": "Service Unavailable"}))
    async with APIManager(settings, client=client) as manager:
        with pytest.raises(MaxRetriesReached):
            await asyncio.wait_for(manager.request("GET", "guilds/1"), 2)
    assert len(seen) == 3


async def test_unauthorized_is_not_retried(settings):
    body = {"code": 0, "message": "401: Unauthorized"}
    client, seen = scripted_client(httpx.Response(401, json=body))
    async with APIManager(settings, client=client) as manager:
        with pytest.raises(APIError) as excinfo:
            await asyncio.wait_for(manager.request("GET", "users/@me"), 2)
    assert excinfo.value.body == body
    assert len(seen) == 1


async def test_requeued_request_runs_before_later_ones(settings):
    calls = []

    def respond(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path.rsplit("/", 1)[-1])
        if len(calls) == 1:
            return httpx.Response(429, json={})
        return httpx.Response(200, json={"id": calls[-1]})

    client, _ = scripted_client(respond)
    manager = APIManager(settings, client=client)
    first = manager.add(RequestDescriptor(method="GET", route="channels/1/messages/10"))
    second = manager.add(RequestDescriptor(method="GET", route="channels/1/messages/11"))
    manager.start()
    try:
        results = await asyncio.wait_for(asyncio.gather(first, second), 2)
    finally:
        await manager.aclose()
    assert calls == ["10", "10", "11"]
    assert results == [{"id": "10"}, {"id": "11"}]


async def test_cancelled_request_is_never_sent(settings):
    client, seen = scripted_client(httpx.Response(200, json={}))
    manager = APIManager(settings, client=client)
    future = manager.add(RequestDescriptor(method="GET", route="guilds/1"))
    future.cancel()
    manager.start()
    await asyncio.sleep(0.05)
    await manager.aclose()
    assert seen == []
    assert future.cancelled()


async def test_unencodable_body_rejects_instead_of_hanging(settings):
    client, seen = scripted_client(httpx.Response(200, json={}))
    async with APIManager(settings, client=client) as manager:
        future = manager.request("POST", "channels/1/messages", body={"at": datetime(2020, 1, 1)})
        with pytest.raises(RequestFailed) as info:
            await asyncio.wait_for(future, 1)
        follow_up = await asyncio.wait_for(manager.request("GET", "guilds/1"), 1)
    assert isinstance(info.value.__cause__, TypeError)
    assert follow_up == {}
    assert [request.url.path for request in seen] == ["/api/v10/guilds/1"]
