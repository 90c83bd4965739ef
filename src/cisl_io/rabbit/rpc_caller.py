"""Client side of RPC: request, ephemeral reply queue, timeout race."""

from __future__ import annotations

import functools
import logging
import threading
import uuid
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

import pika
from pika.adapters.blocking_connection import BlockingChannel

from cisl_io.connection import IoThreadFuture
from cisl_io.contracts import IContentCodec, IRabbitMQConnection
from cisl_io.errors import RpcError, RpcMismatchError, RpcRemoteError, RpcTimeoutError

from .delivery import build_message, build_properties
from .message import MessageFields, RabbitMessage
from .options import DEFAULT_RPC_TIMEOUT_MS, PublishOptions, RabbitOptions

TIMEOUT_GRACE_MS = 100


class PendingCall:
    """One in-flight RPC; settles exactly once, later outcomes are no-ops."""

    def __init__(
        self,
        correlation_id: str,
        timeout_ms: int,
        content_type: Optional[str],
        in_io_thread: Callable[[], bool] = lambda: False,
    ) -> None:
        self.correlation_id = correlation_id
        self.timeout_ms = timeout_ms
        self.content_type = content_type
        self.future: "Future[RabbitMessage]" = IoThreadFuture(in_io_thread)
        # No external cancellation: only a reply or the timer settles a call.
        self.future.set_running_or_notify_cancel()
        self.timer: Any = None
        self.consumer_tag: Optional[str] = None
        self._lock = threading.Lock()
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def _claim(self) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
            return True

    def resolve(self, message: RabbitMessage) -> bool:
        if not self._claim():
            return False
        self.future.set_result(message)
        return True

    def reject(self, exc: BaseException) -> bool:
        if not self._claim():
            return False
        self.future.set_exception(exc)
        return True


class RpcCaller:
    """Issues requests to named queues and matches replies by correlation id."""

    def __init__(
        self,
        *,
        connection: IRabbitMQConnection,
        options: RabbitOptions,
        codec: IContentCodec,
        generate_id: Optional[Callable[[], str]] = None,
        timeout_ms: int = DEFAULT_RPC_TIMEOUT_MS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.connection = connection
        self.options = options
        self.codec = codec
        self.generate_id = generate_id or (lambda: str(uuid.uuid1()))
        self.timeout_ms = timeout_ms
        self.logger = logger or logging.getLogger(__name__)
        self._pending: Dict[str, PendingCall] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def call(
        self,
        queue_name: str,
        content: Any = b"",
        options: Optional[PublishOptions] = None,
    ) -> "Future[RabbitMessage]":
        options = options or PublishOptions()
        correlation_id = options.correlation_id or self.generate_id()
        timeout_ms = options.expiration or self.timeout_ms
        body, content_type = self.codec.pack(content, options.content_type)
        pending = PendingCall(
            correlation_id, timeout_ms, options.content_type, self.connection.in_io_thread
        )

        started = self.connection.submit(
            self._start, queue_name, body, content_type, options, pending
        )
        started.add_done_callback(functools.partial(self._on_started, pending))
        return pending.future

    def _on_started(self, pending: PendingCall, started: "Future[None]") -> None:
        exc = started.exception()
        if exc is not None:
            pending.reject(exc)

    def _start(
        self,
        channel: BlockingChannel,
        queue_name: str,
        body: bytes,
        content_type: str,
        options: PublishOptions,
        pending: PendingCall,
    ) -> None:
        # The reply queue is declared even when the caller supplies reply_to;
        # without it replies to reply_to were observed not to arrive.
        result = channel.queue_declare(queue="", exclusive=True, auto_delete=True)
        reply_queue = result.method.queue
        properties = build_properties(
            options,
            content_type,
            correlation_id=pending.correlation_id,
            reply_to=options.reply_to or reply_queue,
            expiration=str(pending.timeout_ms),
        )

        if options.reply_to:
            channel.basic_publish(exchange="", routing_key=queue_name, body=body, properties=properties)
            self.logger.debug(
                "Sent %s to %s replying to %s", pending.correlation_id, queue_name, options.reply_to
            )
            pending.resolve(
                RabbitMessage(
                    content=None,
                    fields=MessageFields(exchange=self.options.exchange, routing_key=reply_queue),
                    properties=pika.BasicProperties(
                        correlation_id=pending.correlation_id,
                        reply_to=options.reply_to,
                        headers={},
                    ),
                )
            )
            return

        if pending.correlation_id in self._pending:
            pending.reject(RpcError(f"Duplicate correlation id: {pending.correlation_id}"))
            return
        self._pending[pending.correlation_id] = pending

        try:
            pending.timer = self.connection.call_later(
                (pending.timeout_ms + TIMEOUT_GRACE_MS) / 1000.0,
                functools.partial(self._on_timeout, channel, pending),
            )
            pending.consumer_tag = channel.basic_consume(
                queue=reply_queue,
                on_message_callback=functools.partial(self._on_reply, pending),
                auto_ack=True,
            )
            channel.basic_publish(exchange="", routing_key=queue_name, body=body, properties=properties)
        except Exception as exc:
            self.logger.error("Failed to issue RPC %s to %s: %s", pending.correlation_id, queue_name, exc)
            self._finish(channel, pending)
            pending.reject(exc)
            return

        self.logger.debug("Sent RPC %s to %s", pending.correlation_id, queue_name)

    def _on_reply(
        self,
        pending: PendingCall,
        channel: BlockingChannel,
        method: Any,
        properties: pika.BasicProperties,
        body: bytes,
    ) -> None:
        if pending.settled:
            return
        self._finish(channel, pending)

        if properties.correlation_id != pending.correlation_id:
            pending.reject(
                RpcMismatchError(
                    f"Reply correlation id {properties.correlation_id!r} does not match "
                    f"{pending.correlation_id!r}"
                )
            )
            return

        headers = properties.headers or {}
        if "error" in headers:
            pending.reject(RpcRemoteError(str(headers["error"])))
            return

        message, decode_error = build_message(
            self.codec, method, properties, body, pending.content_type
        )
        if decode_error is not None:
            pending.reject(decode_error)
        else:
            pending.resolve(message)

    def _on_timeout(self, channel: BlockingChannel, pending: PendingCall) -> None:
        if pending.settled:
            return
        pending.timer = None
        self._finish(channel, pending)
        self.logger.debug("RPC %s timed out after %s ms", pending.correlation_id, pending.timeout_ms)
        pending.reject(RpcTimeoutError(pending.timeout_ms))

    def _finish(self, channel: BlockingChannel, pending: PendingCall) -> None:
        self._pending.pop(pending.correlation_id, None)
        if pending.timer is not None:
            self.connection.remove_timeout(pending.timer)
            pending.timer = None
        if pending.consumer_tag is not None:
            consumer_tag, pending.consumer_tag = pending.consumer_tag, None
            try:
                channel.basic_cancel(consumer_tag)
            except pika.exceptions.AMQPError as exc:
                self.logger.warning("Failed to cancel reply consumer %s: %s", consumer_tag, exc)
