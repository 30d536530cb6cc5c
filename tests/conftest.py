from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from warren.app.application.application import Application
from warren.app.config.settings import Settings
from warren.app.domain.models import MessageFields, MessageProperties

QUEUE_NAME = "queue-name"


class FakeMessage:
    """Implements IncomingMessage for tests."""

    def __init__(
        self,
        delivery_tag: int = 1,
        *,
        content: bytes = b"",
        reply_to: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.fields = MessageFields(delivery_tag=delivery_tag)
        self.properties = MessageProperties(reply_to=reply_to, correlation_id=correlation_id)
        self.content = content
        self.context: Any = None


class FakeConsumerChannel:
    """Implements ConsumerChannel; records every acknowledgement call."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.closed = False

    async def ack(self, message: Any, *, all_up_to: bool = False) -> None:
        self.calls.append(("ack", message.fields.delivery_tag, all_up_to))

    async def nack(self, message: Any, *, all_up_to: bool = False, requeue: bool = True) -> None:
        self.calls.append(("nack", message.fields.delivery_tag, all_up_to, requeue))

    async def ack_all(self) -> None:
        self.calls.append(("ack_all",))

    async def nack_all(self, *, requeue: bool = True) -> None:
        self.calls.append(("nack_all", requeue))

    async def close(self) -> None:
        self.closed = True


def make_raw_message(**overrides: Any) -> SimpleNamespace:
    """Stand-in for aio_pika.IncomingMessage with the attributes the adapter reads."""
    attrs: dict[str, Any] = {
        "body": b"payload",
        "delivery_tag": 7,
        "redelivered": False,
        "exchange": "",
        "routing_key": QUEUE_NAME,
        "consumer_tag": "ctag-1",
        "content_type": "application/json",
        "content_encoding": None,
        "headers": {"x-trace": "abc"},
        "delivery_mode": 2,
        "priority": None,
        "correlation_id": None,
        "reply_to": None,
        "expiration": None,
        "message_id": "m-1",
        "timestamp": None,
        "type": None,
        "user_id": None,
        "app_id": None,
    }
    attrs.update(overrides)
    return SimpleNamespace(**attrs)


async def _noop(context: Any, next: Any) -> None:
    await next()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture()
def rpc() -> Mock:
    client = Mock()
    client.reply = AsyncMock()
    client.request = AsyncMock()
    return client


@pytest.fixture()
def publisher_channel() -> Mock:
    channel = Mock()
    channel.publish = AsyncMock()
    channel.send_to_queue = AsyncMock()
    return channel


@pytest.fixture()
def consumer_channel() -> FakeConsumerChannel:
    return FakeConsumerChannel()


@pytest.fixture()
def app(settings: Settings, rpc: Mock, publisher_channel: Mock, consumer_channel: FakeConsumerChannel) -> Application:
    application = Application(settings, rpc=rpc)
    application.connection = object()
    application.consumer_channel = consumer_channel
    application.publisher_channel = publisher_channel
    application.context = {"app_foo": 1, "app": "no"}
    application.queue(
        QUEUE_NAME,
        _noop,
        queue_opts={"exclusive": True},
        consume_opts={"no_ack": True},
    )
    return application


@pytest.fixture()
def message() -> FakeMessage:
    return FakeMessage(delivery_tag=1)
