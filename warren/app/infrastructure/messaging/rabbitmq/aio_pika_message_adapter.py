"""Adapter: wrap aio_pika.IncomingMessage to implement ports.IncomingMessage."""
from __future__ import annotations

from typing import Any

from aio_pika.abc import AbstractIncomingMessage

from warren.app.domain.models import MessageFields, MessageProperties


class AioPikaMessageAdapter:
    """Implements warren.app.ports.incoming_message.IncomingMessage for aio_pika."""

    def __init__(self, message: AbstractIncomingMessage) -> None:
        self._message = message
        self.context: Any = None
        self._fields = MessageFields(
            delivery_tag=message.delivery_tag,
            redelivered=bool(message.redelivered),
            exchange=message.exchange or "",
            routing_key=message.routing_key or "",
            consumer_tag=message.consumer_tag,
        )
        self._properties = MessageProperties(
            content_type=message.content_type,
            content_encoding=message.content_encoding,
            headers=dict(message.headers or {}),
            delivery_mode=int(message.delivery_mode) if message.delivery_mode is not None else None,
            priority=message.priority,
            correlation_id=message.correlation_id,
            reply_to=message.reply_to,
            expiration=message.expiration,
            message_id=message.message_id,
            timestamp=message.timestamp,
            type=message.type,
            user_id=message.user_id,
            app_id=message.app_id,
        )

    @property
    def raw(self) -> AbstractIncomingMessage:
        return self._message

    @property
    def fields(self) -> MessageFields:
        return self._fields

    @property
    def properties(self) -> MessageProperties:
        return self._properties

    @property
    def content(self) -> bytes:
        return self._message.body
