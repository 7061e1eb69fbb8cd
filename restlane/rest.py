"""Async request executor backed by httpx with bucket-aware retry/requeue."""
from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx

from .attempt import ExecutionAttempt
from .classifier import ResponseDecoder, classify
from .config import RuntimeSettings, api_url
from .contracts import BucketProtocol
from .errors import (
    APIError,
    HTTPStatusError,
    InvalidResponseFormat,
    MaxRetriesReached,
    RequestFailed,
    RestLaneError,
    TransportFailure,
    error_details,
)
from .scheduler import RetryRequested, RetryScheduler
from .schemas import OutcomeKind, RequestDescriptor, ResponseOutcome


def retry_delay(retry_count: int, base_delay: float) -> float:
    """Delay before re-submitting after a server error; doubled past the second retry."""

    if retry_count > 2:
        return base_delay * 2
    return base_delay


def encode_query(pairs: Tuple[Tuple[str, Any], ...]) -> str:
    """RFC 3986 percent-encoding, pairs kept in the order supplied."""

    normalized = []
    for key, value in pairs:
        if isinstance(value, bool):
            value = "true" if value else "false"
        normalized.append((key, value))
    return urlencode(normalized, quote_via=quote)


class RequestExecutor:
    """Turns descriptors into HTTP calls and drives the retry protocol."""

    def __init__(
        self,
        settings: RuntimeSettings,
        scheduler: RetryScheduler,
        client: Optional[httpx.AsyncClient] = None,
        decoder: Optional[ResponseDecoder] = None,
    ) -> None:
        self._settings = settings
        self._scheduler = scheduler
        self._base_url = api_url(settings)
        self._headers = {
            "X-RateLimit-Precision": "millisecond",
            "User-Agent": settings.user_agent,
        }
        if client is None:
            timeout = httpx.Timeout(settings.request_timeout, connect=5.0)
            client = httpx.AsyncClient(timeout=timeout)
        self._client = client
        self._decoder = decoder or ResponseDecoder(strict=settings.strict_json)

    def build_request(self, descriptor: RequestDescriptor) -> httpx.Request:
        headers = dict(self._headers)
        if descriptor.auth:
            headers["Authorization"] = descriptor.auth
        elif not descriptor.no_auth and self._settings.token:
            headers["Authorization"] = f"Bot {self._settings.token}"

        if descriptor.audit_reason and descriptor.audit_reason.strip():
            headers["X-Audit-Log-Reason"] = quote(descriptor.audit_reason.strip(), safe="")

        url = self._base_url + descriptor.route
        if descriptor.query:
            url += "?" + encode_query(descriptor.query)

        kwargs: Dict[str, Any] = {"headers": headers}
        # Attachments without data or path are skipped; with none left the body goes out as plain JSON
        files = self._multipart_files(descriptor) if descriptor.files else []
        if files:
            kwargs["files"] = files
            if descriptor.body:
                kwargs["data"] = {"payload_json": json.dumps(descriptor.body)}
        elif descriptor.body:
            kwargs["json"] = descriptor.body

        return self._client.build_request(descriptor.method.value, url, **kwargs)

    def _multipart_files(self, descriptor: RequestDescriptor) -> List[Tuple[str, Tuple[str, Any]]]:
        parts = []
        for attachment in descriptor.files:
            if attachment.data is None and attachment.path is None:
                continue
            field = attachment.field or f"file-{os.urandom(3).hex()}"
            if attachment.name:
                filename = attachment.name
            elif attachment.path is not None:
                filename = attachment.path.name
            else:
                filename = f"{field}.jpg"
            contents = attachment.data if attachment.data is not None else attachment.path.read_bytes()
            parts.append((field, (filename, contents)))
        return parts

    async def _load_attachments(self, descriptor: RequestDescriptor) -> RequestDescriptor:
        """Read path-backed attachments off the event loop."""

        if not any(item.data is None and item.path is not None for item in descriptor.files):
            return descriptor
        loaded = []
        for item in descriptor.files:
            if item.data is None and item.path is not None:
                data = await asyncio.to_thread(item.path.read_bytes)
                item = item.model_copy(update={"data": data, "name": item.name or item.path.name})
            loaded.append(item)
        return descriptor.model_copy(update={"files": tuple(loaded)})

    def submit(self, descriptor: RequestDescriptor, bucket: Optional[BucketProtocol] = None) -> asyncio.Future:
        """Start a new attempt for ``descriptor`` and return the caller's future."""

        attempt = ExecutionAttempt(descriptor)
        task = asyncio.get_running_loop().create_task(self.execute(attempt, bucket))
        attempt.future.add_done_callback(lambda fut: task.cancel() if fut.cancelled() else None)
        return attempt.future

    async def execute(self, attempt: ExecutionAttempt, bucket: Optional[BucketProtocol] = None) -> None:
        """Perform one HTTP round trip for ``attempt`` and settle or requeue it."""

        if attempt.done:
            logging.debug(f'[rest] Skipping finished item "{attempt.route}"')
            return

        try:
            await self._round_trip(attempt, bucket)
        except Exception as exc:
            logging.error(f'[rest] Unexpected error handling item "{attempt.route}": {exc!r}')
            error = RequestFailed(attempt.route, str(exc) or type(exc).__name__)
            error.__cause__ = exc
            self._fail(attempt, error)

    async def _round_trip(self, attempt: ExecutionAttempt, bucket: Optional[BucketProtocol]) -> None:
        try:
            descriptor = await self._load_attachments(attempt.descriptor)
        except OSError as exc:
            logging.debug(f'[rest] Could not read attachment for item "{attempt.route}": {exc}')
            self._fail(attempt, TransportFailure(attempt.route, str(exc)))
            return

        try:
            request = self.build_request(descriptor)
        except (TypeError, ValueError) as exc:
            logging.debug(f'[rest] Could not encode item "{attempt.route}": {exc}')
            error = RequestFailed(attempt.route, str(exc))
            error.__cause__ = exc
            self._fail(attempt, error)
            return

        try:
            response = await self._client.send(request)
        except httpx.RequestError as exc:
            logging.debug(f'[rest] No response for item "{attempt.route}": {exc!r}')
            error = TransportFailure(attempt.route, str(exc) or type(exc).__name__)
            error.__cause__ = exc
            self._fail(attempt, error)
            return

        status = response.status_code
        logging.debug(f'[rest] Got response for item "{attempt.route}" with HTTP status code {status}')

        if bucket is not None:
            await bucket.observe(response.headers, descriptor.reaction_endpoint)

        payload = None
        if status != 204:
            try:
                payload = self._decoder.decode(response)
            except InvalidResponseFormat as exc:
                self._fail(attempt, exc)
                return

        outcome = classify(status, payload, response.headers, response.reason_phrase)
        if outcome.kind in (OutcomeKind.SUCCESS, OutcomeKind.EMPTY_BODY):
            attempt.resolve(outcome.payload)
            return

        error = await self._handle_api_error(attempt, outcome, bucket)
        if error is not None:
            self._fail(attempt, error)

    async def _handle_api_error(
        self,
        attempt: ExecutionAttempt,
        outcome: ResponseOutcome,
        bucket: Optional[BucketProtocol],
    ) -> Optional[RestLaneError]:
        status = outcome.status

        if outcome.kind is OutcomeKind.RETRYABLE_SERVER_ERROR:
            attempt.retry_count += 1
            max_retries = self._settings.request_max_retries
            if max_retries > 0 and attempt.retry_count > max_retries:
                logging.debug(
                    f'[rest] Giving up on item "{attempt.route}" after {max_retries} retries due to HTTP {status}'
                )
                return MaxRetriesReached(attempt.route, max_retries, status)

            delay = retry_delay(attempt.retry_count, self._settings.request_error_delay)
            logging.debug(
                f'[rest] Delaying unshifting item "{attempt.route}" by {delay}s due to HTTP {status} '
                f"(retries={attempt.retry_count})"
            )
            self._scheduler.schedule(RetryRequested(attempt=attempt, delay=delay, bucket=bucket))
            return None

        if outcome.kind is OutcomeKind.RATE_LIMITED:
            logging.debug(
                f'[rest] Unshifting item "{attempt.route}" due to HTTP 429 (retries={attempt.retry_count})'
            )
            await self._scheduler.requeue(attempt, bucket)
            return None

        if status is not None and 400 <= status < 500:
            return APIError(attempt.route, status, outcome.payload)
        return HTTPStatusError(status or 0, outcome.reason)

    def _fail(self, attempt: ExecutionAttempt, error: RestLaneError) -> None:
        if attempt.reject(error):
            logging.debug(f"[rest] Request failed: {error_details(error)}")

    async def aclose(self) -> None:
        await self._client.aclose()
