"""Port: channel messages are consumed and acknowledged on."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Protocol

from warren.app.ports.incoming_message import IncomingMessage


class ConsumerChannel(Protocol):
    async def ack(self, message: IncomingMessage, *, all_up_to: bool = False) -> None: ...

    async def nack(
        self,
        message: IncomingMessage,
        *,
        all_up_to: bool = False,
        requeue: bool = True,
    ) -> None: ...

    async def ack_all(self) -> None: ...

    async def nack_all(self, *, requeue: bool = True) -> None: ...

    async def consume(
        self,
        queue_name: str,
        callback: Callable[[Any], Awaitable[None]],
        queue_opts: Mapping[str, Any],
        consume_opts: Mapping[str, Any],
    ) -> str:
        """Declare the queue and start consuming; returns the consumer tag."""
        ...

    async def cancel(self, consumer_tag: str) -> None: ...

    async def close(self) -> None: ...
