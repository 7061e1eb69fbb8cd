"""Terminal error taxonomy surfaced to callers."""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class RestLaneError(Exception):
    """Base class for every terminal request failure."""


class TransportFailure(RestLaneError):
    """Raised when no response was obtained at all (DNS, reset, timeout)."""

    body = None

    def __init__(self, route: str, reason: str) -> None:
        self.route = route
        super().__init__(f'No response for "{route}": {reason}')


class InvalidResponseFormat(RestLaneError):
    """Raised when the payload is an HTML page or cannot be parsed."""


class RequestFailed(RestLaneError):
    """Raised when building or handling a request fails unexpectedly (unencodable body, broken bucket)."""

    def __init__(self, route: str, reason: str) -> None:
        self.route = route
        super().__init__(f'Request "{route}" failed: {reason}')


class APIError(RestLaneError):
    """Permanent 4xx error carrying the remote error body."""

    def __init__(self, route: str, status: int, body: Any) -> None:
        self.route = route
        self.status = status
        self.body = body
        self.code: Optional[int] = None
        message = f"HTTP {status}"
        if isinstance(body, dict):
            self.code = body.get("code")
            message = str(body.get("message", message))
            details = _flatten_errors(body.get("errors"))
            if details:
                message += "\n" + "\n".join(details)
        super().__init__(message)


class MaxRetriesReached(RestLaneError):
    def __init__(self, route: str, max_retries: int, status: int) -> None:
        self.route = route
        self.max_retries = max_retries
        self.status = status
        super().__init__(f"Maximum retry of {max_retries} reached - giving up")


class HTTPStatusError(RestLaneError):
    def __init__(self, status: int, reason: str) -> None:
        self.status = status
        self.reason = reason
        super().__init__(reason)


def _flatten_errors(errors: Any, path: str = "") -> List[str]:
    """Flatten the nested ``errors`` object into ``field.path: message`` lines."""

    if not isinstance(errors, dict):
        return []
    lines: List[str] = []
    for key, value in errors.items():
        if key == "_errors" and isinstance(value, list):
            for item in value:
                message = item.get("message") if isinstance(item, dict) else item
                lines.append(f"{path}: {message}" if path else str(message))
            continue
        child = f"{path}.{key}" if path else str(key)
        if isinstance(value, dict):
            lines.extend(_flatten_errors(value, child))
        elif isinstance(value, str):
            lines.append(f"{child}: {value}")
    return lines


def error_details(exc: RestLaneError) -> Dict[str, Any]:
    """Structured view of an error, handy for log lines."""

    details: Dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    for attr in ("route", "status", "code", "max_retries"):
        value = getattr(exc, attr, None)
        if value is not None:
            details[attr] = value
    return details
