"""RabbitMQ implementation of the reply publisher."""

from __future__ import annotations

import logging
from typing import Any, Optional

import pika
from pika.adapters.blocking_connection import BlockingChannel

from cisl_io.codec import ContentCodec
from cisl_io.contracts import IContentCodec, IReplyPublisher


class RabbitMQReplyPublisher(IReplyPublisher):
    """Publishes RPC replies straight to the requester's reply queue."""

    def __init__(self, codec: Optional[IContentCodec] = None) -> None:
        self.codec = codec or ContentCodec()
        self.logger = logging.getLogger(__name__)

    def publish(
        self,
        *,
        channel: BlockingChannel,
        reply_to: str,
        correlation_id: Optional[str],
        response: Any,
        content_type: Optional[str] = None,
    ) -> None:
        body, resolved_type = self.codec.pack(response, content_type)
        channel.basic_publish(
            exchange="",
            routing_key=reply_to,
            properties=pika.BasicProperties(
                correlation_id=correlation_id,
                content_type=resolved_type,
            ),
            body=body,
        )

        self.logger.debug("Sent reply to %s with correlation_id=%s", reply_to, correlation_id)

    def publish_error(
        self,
        *,
        channel: BlockingChannel,
        reply_to: str,
        correlation_id: Optional[str],
        error: BaseException,
    ) -> None:
        message = str(error) or type(error).__name__
        channel.basic_publish(
            exchange="",
            routing_key=reply_to,
            properties=pika.BasicProperties(
                correlation_id=correlation_id,
                headers={"error": message},
            ),
            body=b"",
        )

        self.logger.debug(
            "Sent error reply to %s with correlation_id=%s: %s", reply_to, correlation_id, message
        )
