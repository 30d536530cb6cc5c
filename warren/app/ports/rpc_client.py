"""Port: request/reply over queues. The default implementation is built on aio-pika."""
from __future__ import annotations

from typing import Any, Mapping, Protocol

from warren.app.ports.incoming_message import IncomingMessage
from warren.app.ports.publisher_channel import PublisherChannel


class RpcClient(Protocol):
    async def reply(
        self,
        channel: PublisherChannel,
        message: IncomingMessage,
        content: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Answer `message` on its reply_to queue, echoing its correlation id."""
        ...

    async def request(
        self,
        connection: Any,
        queue_name: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> IncomingMessage:
        """Send `content` to `queue_name` and resolve with the correlated reply."""
        ...
