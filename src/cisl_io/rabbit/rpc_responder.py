"""Server side of RPC: bind a request queue and enforce single-reply discipline."""

from __future__ import annotations

import functools
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

import pika
from pika.adapters.blocking_connection import BlockingChannel

from cisl_io.contracts import IContentCodec, IRabbitMQConnection, IReplyPublisher
from cisl_io.errors import ReplyAlreadySentError

from .delivery import build_message, cancel_consumer
from .message import RabbitMessage, Subscription
from .options import AckMode, OnRpcOptions

AckCallback = Callable[[], "Future[None]"]
RpcHandler = Callable[
    [RabbitMessage, "Reply", Optional[AckCallback], Optional[BaseException]], None
]


class Reply:
    """Sends the single reply to one request; calling it twice raises."""

    def __init__(
        self,
        *,
        connection: IRabbitMQConnection,
        channel: BlockingChannel,
        publisher: IReplyPublisher,
        properties: pika.BasicProperties,
        content_type: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._connection = connection
        self._channel = channel
        self._publisher = publisher
        self._reply_to = properties.reply_to
        self._correlation_id = properties.correlation_id
        self._content_type = content_type
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger(__name__)
        self.sent = False

    def __call__(self, response: Any) -> "Future[None]":
        with self._lock:
            if self.sent:
                raise ReplyAlreadySentError("Replied more than once.")
            self.sent = True

        if not self._reply_to:
            self._logger.warning(
                "Dropping reply for correlation_id=%s: request has no reply_to",
                self._correlation_id,
            )
            done: "Future[None]" = Future()
            done.set_result(None)
            return done
        return self._connection.submit(self._send, response)

    def _send(self, _shared_channel: BlockingChannel, response: Any) -> None:
        assert self._reply_to is not None
        if isinstance(response, BaseException):
            self._publisher.publish_error(
                channel=self._channel,
                reply_to=self._reply_to,
                correlation_id=self._correlation_id,
                error=response,
            )
        else:
            self._publisher.publish(
                channel=self._channel,
                reply_to=self._reply_to,
                correlation_id=self._correlation_id,
                response=response,
                content_type=self._content_type,
            )


class RpcResponder:
    """Consumes RPC requests from a named queue and hands them to a handler.

    The handler is called as ``handler(message, reply, ack, error)``. ``ack``
    is only provided in manual-ack mode. If decoding fails, or the handler
    raises, the handler is called again with the raw message and the error so
    it can still reply.

    ``basic_qos(prefetch_count=1)`` is applied to the responder's channel. On
    the shared channel every responder competes for that single credit, which
    serializes delivery across responders; ``OnRpcOptions.dedicated_channel``
    avoids this.
    """

    def __init__(
        self,
        *,
        connection: IRabbitMQConnection,
        codec: IContentCodec,
        publisher: IReplyPublisher,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.connection = connection
        self.codec = codec
        self.publisher = publisher
        self.logger = logger or logging.getLogger(__name__)

    def listen(
        self,
        queue_name: str,
        handler: RpcHandler,
        options: Optional[OnRpcOptions] = None,
    ) -> "Future[Subscription]":
        options = options or OnRpcOptions()
        return self.connection.submit(self._listen, queue_name, handler, options)

    def _listen(
        self,
        shared_channel: BlockingChannel,
        queue_name: str,
        handler: RpcHandler,
        options: OnRpcOptions,
    ) -> Subscription:
        channel = self.connection.new_channel() if options.dedicated_channel else shared_channel
        channel.basic_qos(prefetch_count=1)
        channel.queue_declare(queue=queue_name, exclusive=options.exclusive, auto_delete=True)
        consumer_tag = channel.basic_consume(
            queue=queue_name,
            on_message_callback=functools.partial(self._on_request, handler, options),
            auto_ack=options.ack_mode is AckMode.AUTO,
        )
        self.logger.info("Started consuming RPC requests from %s", queue_name)
        return Subscription(
            consumer_tag=consumer_tag,
            queue=queue_name,
            _cancel=functools.partial(cancel_consumer, self.connection, channel, self.logger),
        )

    def _on_request(
        self,
        handler: RpcHandler,
        options: OnRpcOptions,
        channel: BlockingChannel,
        method: Any,
        properties: pika.BasicProperties,
        body: bytes,
    ) -> None:
        self.logger.debug(
            "Received RPC request with correlation_id=%s, reply_to=%s",
            properties.correlation_id,
            properties.reply_to,
        )
        reply = Reply(
            connection=self.connection,
            channel=channel,
            publisher=self.publisher,
            properties=properties,
            content_type=options.content_type,
            logger=self.logger,
        )
        ack: Optional[AckCallback] = None
        if options.ack_mode is AckMode.MANUAL:
            ack = functools.partial(self._ack, channel, method.delivery_tag)

        message, error = build_message(self.codec, method, properties, body, options.content_type)
        if error is None:
            try:
                handler(message, reply, ack, None)
                return
            except ReplyAlreadySentError:
                raise
            except Exception as exc:
                self.logger.error(
                    "RPC handler for %s raised: %s", method.routing_key, exc, exc_info=True
                )
                error = exc

        raw = RabbitMessage(
            content=body, body=body, fields=message.fields, properties=properties
        )
        try:
            handler(raw, reply, ack, error)
        except ReplyAlreadySentError:
            raise
        except Exception as exc:
            self.logger.error(
                "RPC handler for %s failed handling error: %s",
                method.routing_key,
                exc,
                exc_info=True,
            )
            if not reply.sent:
                reply(exc)

    def _ack(self, channel: BlockingChannel, delivery_tag: int) -> "Future[None]":
        def _basic_ack(_shared_channel: BlockingChannel) -> None:
            channel.basic_ack(delivery_tag=delivery_tag)

        return self.connection.submit(_basic_ack)
