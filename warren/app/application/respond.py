"""Apply a context's ack intent to the consumer channel once the chain has finished."""
from __future__ import annotations

from typing import Any

from loguru import logger

from warren.app.core import SERVICE_NAME
from warren.app.domain.ack import AckKind
from warren.app.domain.context import Context


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def respond(context: Context) -> None:
    if context.errored or context.consume_opts.get("no_ack"):
        return

    intent = context.ack_intent
    if intent is None:
        _log("ack_intent_missing", queue=context.queue_name, delivery_tag=context.delivery_tag)
        return

    channel = context.consumer_channel
    opts = intent.opts
    if intent.kind is AckKind.ACK:
        await channel.ack(context.message, all_up_to=bool(opts.get("all_up_to", False)))
    elif intent.kind is AckKind.NACK:
        await channel.nack(
            context.message,
            all_up_to=bool(opts.get("all_up_to", False)),
            requeue=bool(opts.get("requeue", True)),
        )
    elif intent.kind is AckKind.ACK_ALL:
        await channel.ack_all()
    elif intent.kind is AckKind.NACK_ALL:
        await channel.nack_all(requeue=bool(opts.get("requeue", True)))
    _log(
        "message_responded",
        queue=context.queue_name,
        delivery_tag=context.delivery_tag,
        ack=intent.kind.value,
    )
