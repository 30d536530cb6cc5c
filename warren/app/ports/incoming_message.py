"""Port: abstraction for an incoming queue message. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Any, Protocol

from warren.app.domain.models import MessageFields, MessageProperties


class IncomingMessage(Protocol):
    """Transport-agnostic incoming message. The context writes itself back onto `context`."""

    context: Any

    @property
    def fields(self) -> MessageFields: ...

    @property
    def properties(self) -> MessageProperties: ...

    @property
    def content(self) -> bytes: ...
