"""Topic publish/subscribe and plain queue consumption over the shared channel."""

from __future__ import annotations

import functools
import logging
from concurrent.futures import Future
from typing import Any, Callable, Optional

import pika
from pika.adapters.blocking_connection import BlockingChannel

from cisl_io.contracts import IContentCodec, IRabbitMQConnection

from .delivery import build_message, build_properties, cancel_consumer
from .message import RabbitMessage, Subscription
from .options import OnQueueOptions, OnTopicOptions, PublishOptions, RabbitOptions

MessageHandler = Callable[[RabbitMessage, Optional[Exception]], None]


class TopicChannel:
    """Publishes to the configured topic exchange and binds ephemeral subscriber queues.

    Every subscription gets its own exclusive, auto-deleting queue, so each
    subscriber receives its own copy of every matching message.
    """

    def __init__(
        self,
        *,
        connection: IRabbitMQConnection,
        options: RabbitOptions,
        codec: IContentCodec,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.connection = connection
        self.options = options
        self.codec = codec
        self.logger = logger or logging.getLogger(__name__)

    @property
    def exchange(self) -> str:
        return self.options.exchange

    def publish(
        self,
        topic: str,
        content: Any = b"",
        options: Optional[PublishOptions] = None,
    ) -> "Future[bool]":
        options = options or PublishOptions()
        body, content_type = self.codec.pack(content, options.content_type)
        properties = build_properties(options, content_type)
        routing_key = self.options.resolve_topic(topic)
        return self.connection.submit(self._publish, routing_key, body, properties)

    def _publish(
        self,
        channel: BlockingChannel,
        routing_key: str,
        body: bytes,
        properties: pika.BasicProperties,
    ) -> bool:
        channel.exchange_declare(exchange=self.exchange, passive=True)
        channel.basic_publish(
            exchange=self.exchange,
            routing_key=routing_key,
            body=body,
            properties=properties,
        )
        self.logger.debug("Published %d bytes to %s/%s", len(body), self.exchange, routing_key)
        return True

    def subscribe(
        self,
        topic: str,
        handler: MessageHandler,
        options: Optional[OnTopicOptions] = None,
        *,
        apply_prefix: bool = True,
    ) -> "Future[Subscription]":
        options = options or OnTopicOptions()
        pattern = self.options.resolve_topic(topic) if apply_prefix else topic
        return self.connection.submit(self._subscribe, pattern, handler, options)

    def _subscribe(
        self,
        channel: BlockingChannel,
        pattern: str,
        handler: MessageHandler,
        options: OnTopicOptions,
    ) -> Subscription:
        exchange = options.exchange or self.exchange
        channel.exchange_declare(exchange=self.exchange, passive=True)
        result = channel.queue_declare(queue="", exclusive=True, auto_delete=True)
        queue = result.method.queue
        channel.queue_bind(queue=queue, exchange=exchange, routing_key=pattern)
        consumer_tag = channel.basic_consume(
            queue=queue,
            on_message_callback=functools.partial(
                self._on_message, handler, options.content_type
            ),
            auto_ack=True,
        )
        self.logger.info("Subscribed to %s/%s on queue %s", exchange, pattern, queue)
        return Subscription(
            consumer_tag=consumer_tag,
            queue=queue,
            _cancel=functools.partial(cancel_consumer, self.connection, channel, self.logger),
        )

    def consume_queue(
        self,
        queue_name: str,
        handler: MessageHandler,
        options: Optional[OnQueueOptions] = None,
    ) -> "Future[Subscription]":
        options = options or OnQueueOptions()
        return self.connection.submit(self._consume_queue, queue_name, handler, options)

    def _consume_queue(
        self,
        channel: BlockingChannel,
        queue_name: str,
        handler: MessageHandler,
        options: OnQueueOptions,
    ) -> Subscription:
        channel.queue_declare(
            queue=queue_name,
            durable=options.durable,
            exclusive=options.exclusive,
            auto_delete=options.auto_delete,
            arguments=options.arguments,
        )
        consumer_tag = channel.basic_consume(
            queue=queue_name,
            on_message_callback=functools.partial(
                self._on_message, handler, options.content_type
            ),
            auto_ack=True,
        )
        self.logger.info("Started consuming from %s", queue_name)
        return Subscription(
            consumer_tag=consumer_tag,
            queue=queue_name,
            _cancel=functools.partial(cancel_consumer, self.connection, channel, self.logger),
        )

    def _on_message(
        self,
        handler: MessageHandler,
        content_type: Optional[str],
        channel: BlockingChannel,
        method: Any,
        properties: pika.BasicProperties,
        body: bytes,
    ) -> None:
        message, error = build_message(self.codec, method, properties, body, content_type)
        if error is not None:
            self.logger.debug("Failed to decode message on %s: %s", method.routing_key, error)
        try:
            handler(message, error)
        except Exception as exc:
            self.logger.error(
                "Handler for %s raised: %s", method.routing_key, exc, exc_info=True
            )
