"""RPC over queues on top of aio_pika.

request: declare a private reply queue, publish with reply_to + correlation_id, wait
for the first reply carrying the same correlation id, then drop the channel.
reply: send to the request's reply_to queue, echoing its correlation id.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Mapping

from aio_pika.abc import AbstractIncomingMessage
from loguru import logger

from warren.app.core import SERVICE_NAME
from warren.app.domain.content import to_bytes
from warren.app.infrastructure.messaging.rabbitmq.aio_pika_channels import build_message
from warren.app.infrastructure.messaging.rabbitmq.aio_pika_message_adapter import AioPikaMessageAdapter
from warren.app.ports.incoming_message import IncomingMessage
from warren.app.ports.publisher_channel import PublisherChannel

DEFAULT_REPLY_QUEUE_OPTS = {"exclusive": True, "auto_delete": True}
DEFAULT_REPLY_CONSUME_OPTS = {"no_ack": True}


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class RpcError(RuntimeError):
    """Raised when a message cannot take part in request/reply."""


class AioPikaRpcClient:
    """Implements warren.app.ports.rpc_client.RpcClient."""

    async def reply(
        self,
        channel: PublisherChannel,
        message: IncomingMessage,
        content: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        reply_to = message.properties.reply_to
        if not reply_to:
            raise RpcError("cannot reply to a message without reply_to")
        opts = {**(options or {}), "correlation_id": message.properties.correlation_id}
        return await channel.send_to_queue(reply_to, to_bytes(content), opts)

    async def request(
        self,
        connection: Any,
        queue_name: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> IncomingMessage:
        options = options or {}
        send_opts = dict(options.get("send_opts") or {})
        queue_opts = {**DEFAULT_REPLY_QUEUE_OPTS, **(options.get("queue_opts") or {})}
        consume_opts = {**DEFAULT_REPLY_CONSUME_OPTS, **(options.get("consume_opts") or {})}
        correlation_id = send_opts.pop("correlation_id", None) or uuid.uuid4().hex

        channel = await connection.channel()
        try:
            reply_queue = await channel.declare_queue("", **queue_opts)
            future: asyncio.Future[IncomingMessage] = asyncio.get_running_loop().create_future()

            async def on_reply(raw: AbstractIncomingMessage) -> None:
                if raw.correlation_id != correlation_id:
                    _log("rpc_reply_ignored", correlation_id=raw.correlation_id)
                    return
                if not future.done():
                    future.set_result(AioPikaMessageAdapter(raw))

            await reply_queue.consume(on_reply, **consume_opts)
            message, publish_kwargs = build_message(
                content,
                {**send_opts, "correlation_id": correlation_id, "reply_to": reply_queue.name},
            )
            await channel.default_exchange.publish(message, routing_key=queue_name, **publish_kwargs)
            _log("rpc_request_sent", queue=queue_name, correlation_id=correlation_id)
            return await asyncio.wait_for(future, options.get("timeout"))
        finally:
            try:
                await channel.close()
            except Exception as e:
                logger.warning("rpc channel close failed: {}", e)
