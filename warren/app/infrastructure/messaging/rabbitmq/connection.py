"""Broker connection with exponential backoff."""
from __future__ import annotations

from typing import Any

import aio_pika
from aio_pika.abc import AbstractRobustConnection
from loguru import logger

from warren.app.config.settings import Settings
from warren.app.core import SERVICE_NAME
from warren.app.core.backoff import BackoffPolicy, exponential_backoff


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def connect_broker(settings: Settings) -> AbstractRobustConnection:
    """Open a robust connection, retrying under the configured backoff policy."""
    policy = BackoffPolicy.from_settings(settings)
    _log("rmq_connecting", host=settings.broker_host, port=settings.broker_port)
    async for attempt, delay in exponential_backoff(policy):
        _log("rmq_connect_attempt", attempt=attempt, delay=delay)
        try:
            connection = await aio_pika.connect_robust(settings.amqp_url)
        except Exception as e:
            logger.warning("rmq connect failed: {}", e)
            if attempt >= policy.max_attempts:
                _log("rmq_connect_failed", attempt=attempt)
                raise
            continue
        _log("rmq_connected", attempt=attempt)
        return connection
    raise RuntimeError("rmq connect failed: no connection attempts configured")
