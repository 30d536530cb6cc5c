"""Unit tests for the aio_pika adapters: message wrapper, channels and RPC client."""
from __future__ import annotations

import asyncio
from typing import Any

import pytest
from aio_pika import DeliveryMode

from tests.conftest import FakeMessage, make_raw_message
from warren.app.infrastructure.messaging.rabbitmq.aio_pika_channels import (
    AioPikaConsumerChannel,
    AioPikaPublisherChannel,
    build_message,
)
from warren.app.infrastructure.messaging.rabbitmq.aio_pika_message_adapter import AioPikaMessageAdapter
from warren.app.infrastructure.messaging.rabbitmq.rpc import AioPikaRpcClient, RpcError


class _FakeExchange:
    def __init__(self, name: str = "", on_publish=None) -> None:
        self.name = name
        self.published: list[tuple[Any, str, dict[str, Any]]] = []
        self._on_publish = on_publish

    async def publish(self, message, routing_key, **kwargs):
        self.published.append((message, routing_key, kwargs))
        if self._on_publish is not None:
            await self._on_publish(message)
        return "confirmed"


class _FakeUnderlay:
    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    async def basic_ack(self, delivery_tag, multiple=False):
        self.calls.append(("basic_ack", delivery_tag, multiple))

    async def basic_nack(self, delivery_tag=None, multiple=False, requeue=True):
        self.calls.append(("basic_nack", delivery_tag, multiple, requeue))


class _FakeQueue:
    def __init__(self, name: str) -> None:
        self.name = name
        self.callback = None
        self.consume_kwargs: dict[str, Any] = {}
        self.cancelled: list[str] = []

    async def consume(self, callback, **kwargs):
        self.callback = callback
        self.consume_kwargs = kwargs
        return "ctag-1"

    async def cancel(self, consumer_tag):
        self.cancelled.append(consumer_tag)


class _FakeChannel:
    def __init__(self, reply_queue_name: str = "amq.gen-reply") -> None:
        self.default_exchange = _FakeExchange()
        self.exchanges: dict[str, _FakeExchange] = {}
        self.get_exchange_calls: list[tuple[str, bool]] = []
        self.underlay = _FakeUnderlay()
        self.is_closed = False
        self.declared: list[tuple[str, dict[str, Any]]] = []
        self.queue = _FakeQueue(reply_queue_name)

    async def get_exchange(self, name, *, ensure=True):
        self.get_exchange_calls.append((name, ensure))
        return self.exchanges.setdefault(name, _FakeExchange(name))

    async def get_underlay_channel(self):
        return self.underlay

    async def declare_queue(self, name, **kwargs):
        self.declared.append((name, kwargs))
        return self.queue

    async def close(self):
        self.is_closed = True


class _FakeConnection:
    def __init__(self, channel: _FakeChannel) -> None:
        self._channel = channel

    async def channel(self, **kwargs):
        return self._channel


def test_message_adapter_exposes_fields_properties_and_content():
    raw = make_raw_message(delivery_tag=3, redelivered=True, correlation_id="c-1", reply_to="replies")

    message = AioPikaMessageAdapter(raw)

    assert message.raw is raw
    assert message.content == b"payload"
    assert message.fields.delivery_tag == 3
    assert message.fields.redelivered is True
    assert message.fields.routing_key == "queue-name"
    assert message.fields.consumer_tag == "ctag-1"
    assert message.properties.correlation_id == "c-1"
    assert message.properties.reply_to == "replies"
    assert message.properties.headers == {"x-trace": "abc"}
    assert message.properties.delivery_mode == 2
    assert message.context is None


def test_build_message_splits_publish_options():
    message, publish_kwargs = build_message(
        b"body",
        {"persistent": True, "content_type": "text/plain", "mandatory": False, "headers": {"a": 1}},
    )

    assert message.body == b"body"
    assert message.delivery_mode == DeliveryMode.PERSISTENT
    assert message.content_type == "text/plain"
    assert message.headers == {"a": 1}
    assert publish_kwargs == {"mandatory": False}


def test_build_message_without_options():
    message, publish_kwargs = build_message(b"x")

    assert message.body == b"x"
    assert publish_kwargs == {}


@pytest.mark.asyncio
async def test_publisher_publish_to_named_exchange():
    raw = _FakeChannel()
    channel = AioPikaPublisherChannel(raw)

    result = await channel.publish("events", "user.created", b"{}", {"content_type": "application/json"})

    assert result == "confirmed"
    assert raw.get_exchange_calls == [("events", False)]
    message, routing_key, kwargs = raw.exchanges["events"].published[0]
    assert routing_key == "user.created"
    assert message.body == b"{}"
    assert message.content_type == "application/json"
    assert kwargs == {}
    assert raw.default_exchange.published == []


@pytest.mark.asyncio
async def test_publisher_empty_exchange_and_send_to_queue_use_default_exchange():
    raw = _FakeChannel()
    channel = AioPikaPublisherChannel(raw)

    await channel.publish("", "direct-queue", b"a")
    await channel.send_to_queue("jobs", b"b", {"timeout": 5})

    routed = [(routing_key, message.body, kwargs) for message, routing_key, kwargs in raw.default_exchange.published]
    assert routed == [("direct-queue", b"a", {}), ("jobs", b"b", {"timeout": 5})]
    assert raw.get_exchange_calls == []


@pytest.mark.asyncio
async def test_consumer_channel_acknowledgements_use_delivery_tags():
    raw = _FakeChannel()
    channel = AioPikaConsumerChannel(raw)
    message = FakeMessage(delivery_tag=12)

    await channel.ack(message)
    await channel.ack(message, all_up_to=True)
    await channel.nack(message, requeue=False)
    await channel.ack_all()
    await channel.nack_all(requeue=False)

    assert raw.underlay.calls == [
        ("basic_ack", 12, False),
        ("basic_ack", 12, True),
        ("basic_nack", 12, False, False),
        ("basic_ack", 0, True),
        ("basic_nack", 0, True, False),
    ]


@pytest.mark.asyncio
async def test_consumer_channel_consume_and_cancel():
    raw = _FakeChannel()
    channel = AioPikaConsumerChannel(raw)

    async def callback(message):
        return None

    tag = await channel.consume("jobs", callback, {"durable": True}, {"no_ack": False})
    await channel.cancel(tag)
    await channel.cancel("unknown")
    await channel.close()

    assert tag == "ctag-1"
    assert raw.declared == [("jobs", {"durable": True})]
    assert raw.queue.callback is callback
    assert raw.queue.consume_kwargs == {"no_ack": False}
    assert raw.queue.cancelled == ["ctag-1"]
    assert raw.is_closed is True


@pytest.mark.asyncio
async def test_rpc_reply_sends_to_reply_to_with_correlation_id(publisher_channel):
    message = FakeMessage(reply_to="amq.gen-abc", correlation_id="corr-1")

    await AioPikaRpcClient().reply(publisher_channel, message, "pong", {"content_type": "text/plain"})

    publisher_channel.send_to_queue.assert_awaited_once_with(
        "amq.gen-abc",
        b"pong",
        {"content_type": "text/plain", "correlation_id": "corr-1"},
    )


@pytest.mark.asyncio
async def test_rpc_reply_without_reply_to_raises(publisher_channel):
    with pytest.raises(RpcError, match="reply_to"):
        await AioPikaRpcClient().reply(publisher_channel, FakeMessage(), "pong")
    publisher_channel.send_to_queue.assert_not_awaited()


@pytest.mark.asyncio
async def test_rpc_request_resolves_with_correlated_reply():
    channel = _FakeChannel(reply_queue_name="amq.gen-reply")

    async def answer(request_message):
        await channel.queue.callback(make_raw_message(correlation_id="someone-else", body=b"stale"))
        await channel.queue.callback(make_raw_message(correlation_id=request_message.correlation_id, body=b"pong"))

    channel.default_exchange = _FakeExchange(on_publish=answer)

    reply = await AioPikaRpcClient().request(
        _FakeConnection(channel),
        "rpc-queue",
        b"ping",
        {"send_opts": {"correlation_id": "req-1"}, "queue_opts": {}, "consume_opts": {}},
    )

    assert reply.content == b"pong"
    assert reply.properties.correlation_id == "req-1"
    assert channel.declared == [("", {"exclusive": True, "auto_delete": True})]
    assert channel.queue.consume_kwargs == {"no_ack": True}
    message, routing_key, _ = channel.default_exchange.published[0]
    assert routing_key == "rpc-queue"
    assert message.body == b"ping"
    assert message.reply_to == "amq.gen-reply"
    assert message.correlation_id == "req-1"
    assert channel.is_closed is True


@pytest.mark.asyncio
async def test_rpc_request_times_out_and_still_closes_channel():
    channel = _FakeChannel()

    with pytest.raises(asyncio.TimeoutError):
        await AioPikaRpcClient().request(_FakeConnection(channel), "rpc-queue", b"ping", {"timeout": 0.01})

    assert channel.is_closed is True
    message, _, _ = channel.default_exchange.published[0]
    assert message.correlation_id
