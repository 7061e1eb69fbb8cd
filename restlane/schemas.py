"""Pydantic schemas for request descriptors and classified responses."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class FileAttachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: Optional[str] = None
    data: Optional[Union[bytes, str]] = None
    path: Optional[Path] = None
    name: Optional[str] = None


class RequestDescriptor(BaseModel):
    """Immutable description of one logical API call."""

    model_config = ConfigDict(frozen=True)

    method: HTTPMethod
    route: str
    body: Any = None
    files: Tuple[FileAttachment, ...] = ()
    query: Tuple[Tuple[str, Any], ...] = ()
    auth: Optional[str] = None
    no_auth: bool = False
    audit_reason: Optional[str] = None
    reaction_endpoint: bool = False

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("route")
    @classmethod
    def _strip_route(cls, value: str) -> str:
        return value.lstrip("/")

    @field_validator("query", mode="before")
    @classmethod
    def _ordered_query(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, Mapping):
            return tuple(value.items())
        return value


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    EMPTY_BODY = "empty_body"
    RATE_LIMITED = "rate_limited"
    RETRYABLE_SERVER_ERROR = "retryable_server_error"
    PERMANENT_CLIENT_ERROR = "permanent_client_error"
    TRANSPORT_ERROR = "transport_error"


class ResponseOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    status: Optional[int] = None
    payload: Any = None
    reason: str = Field(default="")

    @property
    def retryable(self) -> bool:
        return self.kind in (OutcomeKind.RATE_LIMITED, OutcomeKind.RETRYABLE_SERVER_ERROR)
