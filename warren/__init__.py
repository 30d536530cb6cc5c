"""Koa-style middleware for RabbitMQ consumers on aio-pika."""
from warren.app.application.application import Application
from warren.app.domain.ack import AckIntent, AckKind, AckUnavailableError
from warren.app.domain.context import Context
from warren.app.infrastructure.messaging.rabbitmq.rpc import RpcError

__all__ = [
    "AckIntent",
    "AckKind",
    "AckUnavailableError",
    "Application",
    "Context",
    "RpcError",
]
