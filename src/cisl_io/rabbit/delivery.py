"""Helpers shared by the consumers: message building, properties, cancellation."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Optional, Tuple

import pika
from pika.adapters.blocking_connection import BlockingChannel

from cisl_io.contracts import IContentCodec, IRabbitMQConnection

from .message import MessageFields, RabbitMessage
from .options import PublishOptions


def build_message(
    codec: IContentCodec,
    method: Any,
    properties: pika.BasicProperties,
    body: bytes,
    content_type: Optional[str] = None,
) -> Tuple[RabbitMessage, Optional[Exception]]:
    """Decode a delivery; on failure the message keeps the raw body and the error is returned."""
    fields = MessageFields.from_method(method)
    error: Optional[Exception] = None
    try:
        content = codec.decode(body, content_type or properties.content_type)
    except Exception as exc:
        error = exc
        content = body
    return RabbitMessage(content=content, body=body, fields=fields, properties=properties), error


def build_properties(
    options: PublishOptions,
    content_type: str,
    **overrides: Any,
) -> pika.BasicProperties:
    values = {
        "content_type": content_type,
        "correlation_id": options.correlation_id,
        "reply_to": options.reply_to,
        "headers": dict(options.headers) or None,
        "delivery_mode": options.delivery_mode,
        "priority": options.priority,
        "message_id": options.message_id,
        "app_id": options.app_id,
    }
    values.update(overrides)
    return pika.BasicProperties(**values)


def cancel_consumer(
    connection: IRabbitMQConnection,
    channel: Optional[BlockingChannel],
    logger: logging.Logger,
    consumer_tag: str,
) -> None:
    """Cancel a consumer without waiting; failures are logged and dropped."""

    def _cancel(shared_channel: BlockingChannel) -> None:
        (channel or shared_channel).basic_cancel(consumer_tag)

    future = connection.submit(_cancel)
    future.add_done_callback(lambda done: _log_cancel_failure(done, consumer_tag, logger))


def _log_cancel_failure(future: "Future[None]", consumer_tag: str, logger: logging.Logger) -> None:
    exc = future.exception()
    if exc is not None:
        logger.warning("Failed to cancel consumer %s: %s", consumer_tag, exc)
