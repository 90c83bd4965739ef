"""The Rabbit module: topic pub/sub, RPC and queue consumption behind one object."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Callable, List, Optional

import pika

from cisl_io.codec import ContentCodec
from cisl_io.contracts import IContentCodec, IRabbitMQConnection, IReplyPublisher
from cisl_io.management import ManagementClient, QueueState
from cisl_io.reply_publisher import RabbitMQReplyPublisher

from .message import RabbitMessage, Subscription
from .options import (
    EVENT_EXCHANGE,
    OnQueueOptions,
    OnRpcOptions,
    OnTopicOptions,
    PublishOptions,
    RabbitOptions,
)
from .rpc_caller import RpcCaller
from .rpc_responder import RpcHandler, RpcResponder
from .topic_channel import MessageHandler, TopicChannel

QueueEventHandler = Callable[[str, pika.BasicProperties], None]


class Rabbit:
    """Messaging facade over a single broker connection and its shared channel.

    Every operation returns a future and may be called right after
    construction; work waits for the channel to open.

    Handlers run on the connection's I/O thread. A handler must not block
    on a pending future from the same connection: ``result()`` raises
    :class:`~cisl_io.errors.IoThreadBlockedError` there. Chain instead::

        def handler(message, reply, ack, error):
            inner = rabbit.publish_rpc("other-service", message.content)
            inner.add_done_callback(lambda done: reply(done.result().content))
    """

    def __init__(
        self,
        options: RabbitOptions,
        *,
        connection: IRabbitMQConnection,
        codec: Optional[IContentCodec] = None,
        reply_publisher: Optional[IReplyPublisher] = None,
        management: Optional[ManagementClient] = None,
        generate_id: Optional[Callable[[], str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.options = options
        self.connection = connection
        self.codec = codec or ContentCodec()
        self.management = management or ManagementClient.from_options(options)
        self.logger = logger or logging.getLogger(__name__)

        self.topics = TopicChannel(connection=connection, options=options, codec=self.codec)
        self.caller = RpcCaller(
            connection=connection,
            options=options,
            codec=self.codec,
            generate_id=generate_id,
        )
        self.responder = RpcResponder(
            connection=connection,
            codec=self.codec,
            publisher=reply_publisher or RabbitMQReplyPublisher(self.codec),
        )

        self.connection.open()

    @property
    def exchange(self) -> str:
        return self.options.exchange

    def set_timeout(self, timeout_ms: int) -> None:
        """Set the default timeout in ms for :meth:`publish_rpc`."""
        self.caller.timeout_ms = timeout_ms

    def publish_topic(
        self,
        topic: str,
        content: Any = b"",
        options: Optional[PublishOptions] = None,
    ) -> "Future[bool]":
        """Publish ``content`` to the exchange with ``topic`` as routing key.

        The content type is inferred from the value (bytes, number, str,
        anything else as JSON) unless ``options.content_type`` overrides it.
        """
        return self.topics.publish(topic, content, options)

    def on_topic(
        self,
        topic: str,
        handler: MessageHandler,
        options: Optional[OnTopicOptions] = None,
    ) -> "Future[Subscription]":
        """Subscribe ``handler(message, error)`` to a topic pattern (``*`` and ``#`` allowed)."""
        return self.topics.subscribe(topic, handler, options)

    def publish_rpc(
        self,
        queue_name: str,
        content: Any = b"",
        options: Optional[PublishOptions] = None,
    ) -> "Future[RabbitMessage]":
        """Send a request to ``queue_name`` and resolve with the decoded reply.

        With ``options.reply_to`` set the request is fire-and-forget: the
        future resolves at once with ``content=None``.
        """
        return self.caller.call(queue_name, content, options)

    def on_rpc(
        self,
        queue_name: str,
        handler: RpcHandler,
        options: Optional[OnRpcOptions] = None,
    ) -> "Future[Subscription]":
        """Answer requests on ``queue_name`` with ``handler(message, reply, ack, error)``.

        ``reply`` may be called once, from the handler or later from a done
        callback; ``ack`` is only given with ``AckMode.MANUAL``.
        """
        return self.responder.listen(queue_name, handler, options)

    def on_queue(
        self,
        queue_name: str,
        handler: MessageHandler,
        options: Optional[OnQueueOptions] = None,
    ) -> "Future[Subscription]":
        """Consume a named queue with ``handler(message, error)``, declaring it if needed."""
        return self.topics.consume_queue(queue_name, handler, options)

    def on_queue_created(self, handler: QueueEventHandler) -> "Future[Subscription]":
        return self._on_queue_event("queue.created", handler)

    def on_queue_deleted(self, handler: QueueEventHandler) -> "Future[Subscription]":
        return self._on_queue_event("queue.deleted", handler)

    def _on_queue_event(self, event: str, handler: QueueEventHandler) -> "Future[Subscription]":
        def _dispatch(message: RabbitMessage, _error: Optional[Exception]) -> None:
            handler(message.headers.get("name", ""), message.properties)

        return self.topics.subscribe(
            event, _dispatch, OnTopicOptions(exchange=EVENT_EXCHANGE), apply_prefix=False
        )

    def get_queues(self) -> List[QueueState]:
        """List queues on the configured vhost through the management API."""
        return self.management.get_queues()

    def close(self) -> None:
        self.connection.close()
        self.management.close()
