"""
Application: queue registry, broker lifecycle and the per-message driver.

Lifecycle:
  DISCONNECTED -> CONNECTING (backoff) -> CONNECTED -> CHANNELS_OPEN -> CONSUMING.
  On shutdown: CONSUMING -> CLOSING -> cancel consumers, close channels/connection -> CLOSED.

Per message:
  build Context -> run app middlewares then queue middlewares -> respond(context).
  If the chain raises: context.onerror(err) poisons the ack intent and emits the
  error, then the message is nacked (requeue=settings.error_requeue) unless the
  queue consumes with no_ack.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

from loguru import logger

from warren.app.application.compose import compose
from warren.app.application.respond import respond
from warren.app.config.settings import Settings
from warren.app.core import SERVICE_NAME
from warren.app.domain.context import Context
from warren.app.domain.models import Middleware, QueueRegistration
from warren.app.infrastructure.messaging.rabbitmq.aio_pika_channels import (
    AioPikaConsumerChannel,
    AioPikaPublisherChannel,
)
from warren.app.infrastructure.messaging.rabbitmq.aio_pika_message_adapter import AioPikaMessageAdapter
from warren.app.infrastructure.messaging.rabbitmq.connection import connect_broker
from warren.app.infrastructure.messaging.rabbitmq.constants import ApplicationState
from warren.app.infrastructure.messaging.rabbitmq.rpc import AioPikaRpcClient
from warren.app.ports.consumer_channel import ConsumerChannel
from warren.app.ports.incoming_message import IncomingMessage
from warren.app.ports.publisher_channel import PublisherChannel
from warren.app.ports.rpc_client import RpcClient

ErrorListener = Callable[[BaseException | None, Context | None], None]


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class Application:
    def __init__(self, settings: Settings | None = None, *, rpc: RpcClient | None = None) -> None:
        self._settings = settings or Settings()
        self._state = ApplicationState.DISCONNECTED
        self.rpc: RpcClient = rpc or AioPikaRpcClient()
        self.context: dict[str, Any] = {}
        self.middlewares: list[Middleware] = []
        self.queue_map: dict[str, QueueRegistration] = {}
        self.connection: Any = None
        self.consumer_channel: ConsumerChannel | None = None
        self.publisher_channel: PublisherChannel | None = None
        self._handlers: dict[str, Callable[[Context], Awaitable[None]]] = {}
        self._consumer_tags: dict[str, str] = {}
        self._error_listeners: list[ErrorListener] = []

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def state(self) -> ApplicationState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state == ApplicationState.CONSUMING

    def _set_state(self, state: ApplicationState) -> None:
        self._state = state

    # registration

    def use(self, middleware: Middleware) -> "Application":
        """Add a middleware that runs for every queue, ahead of queue middlewares."""
        if not callable(middleware):
            raise TypeError(f"middleware must be callable, got {middleware!r}")
        self.middlewares.append(middleware)
        self._handlers.clear()
        return self

    def queue(
        self,
        queue_name: str,
        *middlewares: Middleware,
        queue_opts: dict[str, Any] | None = None,
        consume_opts: dict[str, Any] | None = None,
    ) -> "Application":
        if self._state != ApplicationState.DISCONNECTED:
            raise RuntimeError("queues must be registered before connect()")
        if queue_name in self.queue_map:
            raise ValueError(f"queue already registered: {queue_name}")
        if not middlewares:
            raise ValueError(f"queue {queue_name} needs at least one middleware")
        for middleware in middlewares:
            if not callable(middleware):
                raise TypeError(f"middleware must be callable, got {middleware!r}")
        self.queue_map[queue_name] = QueueRegistration(
            queue_name=queue_name,
            middlewares=tuple(middlewares),
            queue_opts=dict(queue_opts or {}),
            consume_opts=dict(consume_opts or {}),
        )
        return self

    def on_error(self, listener: ErrorListener) -> ErrorListener:
        self._error_listeners.append(listener)
        return listener

    def emit_error(self, err: BaseException | None, context: Context | None = None) -> None:
        queue_name = context.queue_name if context is not None else None
        if not self._error_listeners:
            logger.opt(exception=err).bind(
                service_name=SERVICE_NAME, event="middleware_error", queue=queue_name
            ).error("unhandled error in queue {}: {}", queue_name, err)
            return
        for listener in self._error_listeners:
            try:
                listener(err, context)
            except Exception as e:
                logger.exception("error listener failed: {}", e)

    # per-message driver

    def create_context(self, queue_name: str, message: IncomingMessage, **overrides: Any) -> Context:
        return Context(self, queue_name, message, **overrides)

    def _handler_for(self, queue_name: str) -> Callable[[Context], Awaitable[None]]:
        handler = self._handlers.get(queue_name)
        if handler is None:
            registration = self.queue_map[queue_name]
            handler = compose([*self.middlewares, *registration.middlewares])
            self._handlers[queue_name] = handler
        return handler

    async def handle_message(self, queue_name: str, message: IncomingMessage) -> Context:
        handler = self._handler_for(queue_name)
        context = self.create_context(queue_name, message)
        _log("message_received", queue=queue_name, delivery_tag=context.delivery_tag)
        try:
            await handler(context)
        except Exception as err:
            context.onerror(err)
            if not context.consume_opts.get("no_ack"):
                await self.consumer_channel.nack(message, requeue=self._settings.error_requeue)
            _log(
                "message_failed",
                queue=queue_name,
                delivery_tag=context.delivery_tag,
                error=str(err),
                requeue=self._settings.error_requeue,
            )
            return context
        await respond(context)
        return context

    def _create_consumer(self, queue_name: str) -> Callable[[Any], Awaitable[None]]:
        async def on_message(raw_message: Any) -> None:
            try:
                await self.handle_message(queue_name, AioPikaMessageAdapter(raw_message))
            except Exception as e:
                logger.exception("message handling failed on queue {}: {}", queue_name, e)

        return on_message

    # lifecycle

    async def connect(self) -> None:
        self._set_state(ApplicationState.CONNECTING)
        try:
            self.connection = await connect_broker(self._settings)
        except Exception:
            self._set_state(ApplicationState.DISCONNECTED)
            raise
        self._set_state(ApplicationState.CONNECTED)

        consumer = await self.connection.channel()
        await consumer.set_qos(prefetch_count=self._settings.prefetch_count)
        publisher = await self.connection.channel(publisher_confirms=self._settings.publisher_confirms)
        self.consumer_channel = AioPikaConsumerChannel(consumer)
        self.publisher_channel = AioPikaPublisherChannel(publisher)
        self._set_state(ApplicationState.CHANNELS_OPEN)

        for queue_name, registration in self.queue_map.items():
            self._consumer_tags[queue_name] = await self.consumer_channel.consume(
                queue_name,
                self._create_consumer(queue_name),
                registration.queue_opts,
                registration.consume_opts,
            )
            _log("queue_consuming", queue=queue_name, consumer_tag=self._consumer_tags[queue_name])
        self._set_state(ApplicationState.CONSUMING)
        _log("application_ready", queues=list(self.queue_map))

    async def close(self) -> None:
        self._set_state(ApplicationState.CLOSING)
        _log("application_shutdown")
        if self.consumer_channel is not None:
            for queue_name, consumer_tag in list(self._consumer_tags.items()):
                try:
                    await self.consumer_channel.cancel(consumer_tag)
                except Exception as exc:
                    logger.warning("consumer cancel failed for queue {}: {}", queue_name, exc)
        self._consumer_tags.clear()

        for name, channel in (("publisher", self.publisher_channel), ("consumer", self.consumer_channel)):
            if channel is None:
                continue
            try:
                await channel.close()
            except Exception as exc:
                logger.warning("{} channel close failed: {}", name, exc)
        self.publisher_channel = None
        self.consumer_channel = None

        if self.connection is not None:
            try:
                await self.connection.close()
            except Exception as exc:
                logger.warning("connection close failed: {}", exc)
            self.connection = None
        self._set_state(ApplicationState.CLOSED)
