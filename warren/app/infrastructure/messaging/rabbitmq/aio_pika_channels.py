"""Adapters: aio_pika channels behind the PublisherChannel and ConsumerChannel ports.

Publish options are aio_pika.Message keyword arguments, plus `persistent` (shorthand
for DeliveryMode.PERSISTENT) and the publish-call keys `mandatory` and `timeout`.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping

import aio_pika
from aio_pika import DeliveryMode
from aio_pika.abc import AbstractChannel, AbstractQueue

from warren.app.ports.incoming_message import IncomingMessage

PUBLISH_CALL_OPTIONS = frozenset({"mandatory", "timeout"})


def build_message(
    content: bytes,
    options: Mapping[str, Any] | None = None,
) -> tuple[aio_pika.Message, dict[str, Any]]:
    """Split publish options into a Message and the kwargs for Exchange.publish."""
    message_kwargs = dict(options or {})
    publish_kwargs = {key: message_kwargs.pop(key) for key in PUBLISH_CALL_OPTIONS if key in message_kwargs}
    if message_kwargs.pop("persistent", False):
        message_kwargs.setdefault("delivery_mode", DeliveryMode.PERSISTENT)
    return aio_pika.Message(content, **message_kwargs), publish_kwargs


class AioPikaPublisherChannel:
    """Implements warren.app.ports.publisher_channel.PublisherChannel."""

    def __init__(self, channel: AbstractChannel) -> None:
        self._channel = channel

    @property
    def channel(self) -> AbstractChannel:
        return self._channel

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        if exchange:
            target = await self._channel.get_exchange(exchange, ensure=False)
        else:
            target = self._channel.default_exchange
        message, publish_kwargs = build_message(content, options)
        return await target.publish(message, routing_key=routing_key, **publish_kwargs)

    async def send_to_queue(
        self,
        queue_name: str,
        content: bytes,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        return await self.publish("", queue_name, content, options)

    async def close(self) -> None:
        if not self._channel.is_closed:
            await self._channel.close()


class AioPikaConsumerChannel:
    """Implements warren.app.ports.consumer_channel.ConsumerChannel.

    Acknowledgements go straight to the underlying AMQP channel by delivery tag, so
    `ack_all` / `nack_all` (delivery tag 0 with `multiple`) cover every
    outstanding delivery on the channel.
    """

    def __init__(self, channel: AbstractChannel) -> None:
        self._channel = channel
        self._queues: dict[str, AbstractQueue] = {}

    @property
    def channel(self) -> AbstractChannel:
        return self._channel

    async def ack(self, message: IncomingMessage, *, all_up_to: bool = False) -> None:
        underlay = await self._channel.get_underlay_channel()
        await underlay.basic_ack(message.fields.delivery_tag, multiple=all_up_to)

    async def nack(
        self,
        message: IncomingMessage,
        *,
        all_up_to: bool = False,
        requeue: bool = True,
    ) -> None:
        underlay = await self._channel.get_underlay_channel()
        await underlay.basic_nack(message.fields.delivery_tag, multiple=all_up_to, requeue=requeue)

    async def ack_all(self) -> None:
        underlay = await self._channel.get_underlay_channel()
        await underlay.basic_ack(0, multiple=True)

    async def nack_all(self, *, requeue: bool = True) -> None:
        underlay = await self._channel.get_underlay_channel()
        await underlay.basic_nack(0, multiple=True, requeue=requeue)

    async def consume(
        self,
        queue_name: str,
        callback: Callable[[Any], Awaitable[None]],
        queue_opts: Mapping[str, Any],
        consume_opts: Mapping[str, Any],
    ) -> str:
        queue = await self._channel.declare_queue(queue_name, **queue_opts)
        consumer_tag = await queue.consume(callback, **consume_opts)
        self._queues[consumer_tag] = queue
        return consumer_tag

    async def cancel(self, consumer_tag: str) -> None:
        queue = self._queues.pop(consumer_tag, None)
        if queue is not None:
            await queue.cancel(consumer_tag)

    async def close(self) -> None:
        self._queues.clear()
        if not self._channel.is_closed:
            await self._channel.close()
