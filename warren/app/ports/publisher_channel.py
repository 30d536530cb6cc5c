"""Port: channel used by contexts to publish. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Any, Mapping, Protocol


class PublisherChannel(Protocol):
    async def publish(
        self,
        exchange: str,
        routing_key: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> Any: ...

    async def send_to_queue(
        self,
        queue_name: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> Any: ...

    async def close(self) -> None: ...
