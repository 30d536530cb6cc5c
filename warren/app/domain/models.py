"""Domain models for inbound messages and queue registrations."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

Middleware = Callable[[Any, Callable[[], Awaitable[None]]], Awaitable[None]]


@dataclass(frozen=True)
class MessageFields:
    """Delivery fields of an inbound message."""

    delivery_tag: int
    redelivered: bool = False
    exchange: str = ""
    routing_key: str = ""
    consumer_tag: str | None = None


@dataclass(frozen=True)
class MessageProperties:
    """Basic properties of an inbound message."""

    content_type: str | None = None
    content_encoding: str | None = None
    headers: dict[str, Any] = field(default_factory=dict)
    delivery_mode: int | None = None
    priority: int | None = None
    correlation_id: str | None = None
    reply_to: str | None = None
    expiration: Any = None
    message_id: str | None = None
    timestamp: datetime | None = None
    type: str | None = None
    user_id: str | None = None
    app_id: str | None = None


@dataclass(frozen=True)
class QueueRegistration:
    queue_name: str
    middlewares: tuple[Middleware, ...]
    queue_opts: dict[str, Any] = field(default_factory=dict)
    consume_opts: dict[str, Any] = field(default_factory=dict)
