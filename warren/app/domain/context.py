"""Per-message context threaded through the middleware chain.

A context is built once per delivery. It copies every entry of the application's
shared `context` mapping except `app` and names defined on the Context class (the
helpers and intent properties). Framework attributes such as `queue_name`,
`message` and the channels are assigned after the copy and replace same-named
entries. It also records the acknowledgement intent the driver applies after the
chain finishes.

The four intent properties (`ack`, `nack`, `ack_all`, `nack_all`) are views over a
single slot, so setting one clears the others. After `onerror` the slot is
poisoned and every access raises AckUnavailableError.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from warren.app.domain.ack import AckIntent, AckKind, AckUnavailableError
from warren.app.domain.content import to_bytes, to_json_bytes
from warren.app.ports.incoming_message import IncomingMessage

if TYPE_CHECKING:
    from warren.app.application.application import Application

RESERVED_CONTEXT_KEYS = frozenset({"app"})


class Context:
    def __init__(
        self,
        app: "Application",
        queue_name: str,
        message: IncomingMessage,
        *,
        queue_opts: Mapping[str, Any] | None = None,
        consume_opts: Mapping[str, Any] | None = None,
    ) -> None:
        for key, value in app.context.items():
            if key in RESERVED_CONTEXT_KEYS or hasattr(type(self), key):
                continue
            setattr(self, key, value)

        self.app = app
        self.connection = app.connection
        self.consumer_channel = app.consumer_channel
        self.publisher_channel = app.publisher_channel
        self.rpc = app.rpc

        self.queue_name = queue_name
        self.message = message
        self.delivery_tag = message.fields.delivery_tag

        registration = app.queue_map[queue_name]
        self.queue_opts: dict[str, Any] = {**registration.queue_opts, **(queue_opts or {})}
        self.consume_opts: dict[str, Any] = {**registration.consume_opts, **(consume_opts or {})}

        self.state: dict[str, Any] = {}
        self.error: BaseException | None = None
        self._ack_intent: AckIntent | None = None
        self._ack_poisoned = False

        message.context = self

    def __repr__(self) -> str:
        return f"<Context queue={self.queue_name!r} delivery_tag={self.delivery_tag!r}>"

    # ack intent

    @property
    def errored(self) -> bool:
        return self._ack_poisoned

    @property
    def ack_intent(self) -> AckIntent | None:
        self._ensure_ack_available()
        return self._ack_intent

    def _ensure_ack_available(self) -> None:
        if self._ack_poisoned:
            raise AckUnavailableError()

    def _get_intent(self, kind: AckKind) -> dict[str, Any] | None:
        self._ensure_ack_available()
        if self._ack_intent is not None and self._ack_intent.kind is kind:
            return self._ack_intent.opts
        return None

    def _set_intent(self, kind: AckKind, opts: Any) -> None:
        self._ensure_ack_available()
        if opts is True:
            self._ack_intent = AckIntent(kind, {})
        elif isinstance(opts, Mapping):
            self._ack_intent = AckIntent(kind, dict(opts))
        elif not opts:
            self._ack_intent = None
        else:
            raise TypeError(f"{kind.value} expects a mapping of options, True or a falsy value, got {opts!r}")

    @property
    def ack(self) -> dict[str, Any] | None:
        return self._get_intent(AckKind.ACK)

    @ack.setter
    def ack(self, opts: Any) -> None:
        self._set_intent(AckKind.ACK, opts)

    @property
    def nack(self) -> dict[str, Any] | None:
        return self._get_intent(AckKind.NACK)

    @nack.setter
    def nack(self, opts: Any) -> None:
        self._set_intent(AckKind.NACK, opts)

    @property
    def ack_all(self) -> dict[str, Any] | None:
        return self._get_intent(AckKind.ACK_ALL)

    @ack_all.setter
    def ack_all(self, opts: Any) -> None:
        self._set_intent(AckKind.ACK_ALL, opts)

    @property
    def nack_all(self) -> dict[str, Any] | None:
        return self._get_intent(AckKind.NACK_ALL)

    @nack_all.setter
    def nack_all(self, opts: Any) -> None:
        self._set_intent(AckKind.NACK_ALL, opts)

    def onerror(self, err: BaseException | None = None) -> None:
        """Poison the ack intent and hand the error to the application."""
        if self._ack_poisoned:
            return
        self._ack_poisoned = True
        self._ack_intent = None
        self.error = err
        self.app.emit_error(err, self)

    # messaging helpers

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        content: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        return await self.publisher_channel.publish(exchange, routing_key, to_bytes(content), options)

    async def send_to_queue(
        self,
        queue_name: str,
        content: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        return await self.publisher_channel.send_to_queue(queue_name, to_json_bytes(content), options)

    async def reply(self, content: Any, options: Mapping[str, Any] | None = None) -> Any:
        """Answer the RPC request carried by this context's message."""
        return await self.rpc.reply(self.publisher_channel, self.message, content, options)

    async def request(
        self,
        queue_name: str,
        content: Any,
        send_opts: Mapping[str, Any] | None = None,
        queue_opts: Mapping[str, Any] | None = None,
        consume_opts: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> IncomingMessage:
        """Send an RPC request and wait for the correlated reply message.

        With `timeout` set, waiting longer than that many seconds raises asyncio.TimeoutError.
        """
        options: dict[str, Any] = {
            "send_opts": send_opts or {},
            "queue_opts": queue_opts or {},
            "consume_opts": consume_opts or {},
        }
        if timeout is not None:
            options["timeout"] = timeout
        return await self.rpc.request(self.connection, queue_name, to_bytes(content), options)
