"""Webhook routes, resolved once per call from the kind of target."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from .schemas import FileAttachment, HTTPMethod, RequestDescriptor


@dataclass(frozen=True)
class TokenBound:
    """Webhook addressed by id and token; no bot credential needed."""

    id: str
    token: str


@dataclass(frozen=True)
class BotAuthenticated:
    id: str


WebhookTarget = Union[TokenBound, BotAuthenticated]


def webhook_target(webhook_id: str, token: Optional[str] = None) -> WebhookTarget:
    if token:
        return TokenBound(id=webhook_id, token=token)
    return BotAuthenticated(id=webhook_id)


def _route(target: WebhookTarget) -> str:
    if isinstance(target, TokenBound):
        return f"webhooks/{target.id}/{target.token}"
    return f"webhooks/{target.id}"


def edit_webhook(target: WebhookTarget, data: Dict[str, Any], reason: str = "") -> RequestDescriptor:
    return RequestDescriptor(
        method=HTTPMethod.PATCH,
        route=_route(target),
        body=data,
        no_auth=isinstance(target, TokenBound),
        audit_reason=reason or None,
    )


def delete_webhook(target: WebhookTarget, reason: str = "") -> RequestDescriptor:
    return RequestDescriptor(
        method=HTTPMethod.DELETE,
        route=_route(target),
        no_auth=isinstance(target, TokenBound),
        audit_reason=reason or None,
    )


def execute_webhook(
    target: TokenBound,
    data: Dict[str, Any],
    files: Iterable[FileAttachment] = (),
    wait: bool = True,
) -> RequestDescriptor:
    """Post a message through a webhook; only token-bound webhooks can send."""

    if not isinstance(target, TokenBound):
        raise ValueError("Can not use webhook without token to send message")
    return RequestDescriptor(
        method=HTTPMethod.POST,
        route=_route(target),
        body=data,
        files=tuple(files),
        query=(("wait", wait),),
        no_auth=True,
    )
