"""Rate-limit aware REST request pipeline."""
from __future__ import annotations

__version__ = "0.1.0"

from .attempt import ExecutionAttempt
from .config import RuntimeSettings, api_url, get_settings
from .errors import (
    APIError,
    HTTPStatusError,
    InvalidResponseFormat,
    MaxRetriesReached,
    RequestFailed,
    RestLaneError,
    TransportFailure,
)
from .manager import APIManager, DispatchQueue
from .ratelimit import RateLimitBucket, RateLimiter, bucket_key
from .rest import RequestExecutor
from .schemas import FileAttachment, HTTPMethod, OutcomeKind, RequestDescriptor, ResponseOutcome
from .scheduler import RetryRequested, RetryScheduler
from .webhooks import BotAuthenticated, TokenBound, webhook_target

__all__ = [
    "APIError",
    "APIManager",
    "BotAuthenticated",
    "DispatchQueue",
    "ExecutionAttempt",
    "FileAttachment",
    "HTTPMethod",
    "HTTPStatusError",
    "InvalidResponseFormat",
    "MaxRetriesReached",
    "OutcomeKind",
    "RateLimitBucket",
    "RateLimiter",
    "RequestDescriptor",
    "RequestExecutor",
    "RequestFailed",
    "ResponseOutcome",
    "RestLaneError",
    "RetryRequested",
    "RetryScheduler",
    "RuntimeSettings",
    "TokenBound",
    "TransportFailure",
    "api_url",
    "bucket_key",
    "get_settings",
    "webhook_target",
]
