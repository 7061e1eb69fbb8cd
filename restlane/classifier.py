"""Response body decoding and status classification."""
from __future__ import annotations

import json
from typing import Any, Mapping, Optional

import httpx

from .errors import InvalidResponseFormat
from .schemas import OutcomeKind, ResponseOutcome


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


class ResponseDecoder:
    """Decodes structured response bodies.

    Strictness is fixed at construction: a strict decoder rejects
    ``NaN``/``Infinity`` literals and raw control characters inside strings.
    """

    def __init__(self, strict: bool = True) -> None:
        self.strict = strict
        if strict:
            self._decoder = json.JSONDecoder(strict=True, parse_constant=_reject_constant)
        else:
            self._decoder = json.JSONDecoder(strict=False)

    def decode(self, response: httpx.Response) -> Any:
        content_type = response.headers.get("Content-Type", "")
        if "text/html" in content_type.lower():
            raise InvalidResponseFormat("Invalid API response: HTML response body received")

        body = response.text
        if not body.strip():
            return None
        try:
            return self._decoder.decode(body)
        except ValueError as exc:
            raise InvalidResponseFormat(f"Invalid API response: malformed payload ({exc})") from exc


def classify(
    status: Optional[int],
    payload: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    reason: str = "",
) -> ResponseOutcome:
    """Map a status code (``None`` when nothing came back) to its outcome class."""

    if status is None:
        kind = OutcomeKind.TRANSPORT_ERROR
    elif status == 204:
        kind = OutcomeKind.EMPTY_BODY
        payload = None
    elif status < 400:
        kind = OutcomeKind.SUCCESS
    elif status >= 500:
        kind = OutcomeKind.RETRYABLE_SERVER_ERROR
    elif status == 429:
        kind = OutcomeKind.RATE_LIMITED
    else:
        kind = OutcomeKind.PERMANENT_CLIENT_ERROR

    if not reason and headers is not None and kind is OutcomeKind.RATE_LIMITED:
        retry_after = headers.get("Retry-After")
        if retry_after:
            reason = f"retry after {retry_after}s"
    return ResponseOutcome(kind=kind, status=status, payload=payload, reason=reason)
