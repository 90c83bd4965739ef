"""RabbitMQ connection management."""

from __future__ import annotations

import enum
import functools
import logging
import os
import threading
from collections import deque
from concurrent.futures import Future
from types import TracebackType
from typing import Any, Callable, Deque, Optional, Tuple, Type, TypeVar

import pika
from pika.adapters.blocking_connection import BlockingChannel, BlockingConnection
from pika.connection import Parameters

from cisl_io.contracts import IRabbitMQConnection
from cisl_io.errors import ConnectionClosedError

from .io_future import IoThreadFuture

T = TypeVar("T")

_Task = Tuple[Callable[..., Any], Tuple[Any, ...], "Future[Any]"]


class ConnectionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


def terminate_process(exc: BaseException) -> None:
    """Default fatal hook: a broker-dependent process cannot run half-connected."""
    logging.getLogger(__name__).critical("Terminating after fatal RabbitMQ error: %s", exc)
    os._exit(1)


class RabbitMQConnection(IRabbitMQConnection):
    """Owns one blocking connection and its shared channel on a dedicated I/O thread.

    Work submitted before the channel opens waits in an outbox and is flushed,
    in order, once the connection is ready. There is no reconnection: a failed
    connect or a broken connection is handed to ``on_fatal``.
    """

    poll_interval = 0.05
    join_timeout = 5.0

    def __init__(
        self,
        parameters: Parameters,
        *,
        connection_factory: Callable[[Parameters], BlockingConnection] = pika.BlockingConnection,
        on_fatal: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self._parameters = parameters
        self._connection_factory = connection_factory
        self._on_fatal = on_fatal or terminate_process
        self.connection: Optional[BlockingConnection] = None
        self.channel: Optional[BlockingChannel] = None
        self.state = ConnectionState.UNINITIALIZED
        self.ready = threading.Event()
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._outbox: Deque[_Task] = deque()
        self._closing = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def open(self) -> None:
        with self._lock:
            if self.state is not ConnectionState.UNINITIALIZED:
                return
            self.state = ConnectionState.CONNECTING
            self._thread = threading.Thread(target=self._run, name="cisl-io-rabbitmq", daemon=True)
        self._thread.start()

    def submit(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        future: "Future[T]" = IoThreadFuture(self.in_io_thread)
        if self.in_io_thread():
            self._run_task(fn, args, future)
            return future

        with self._lock:
            if self.state is ConnectionState.CLOSED or self._closing.is_set():
                future.set_exception(ConnectionClosedError("RabbitMQ connection is closed"))
                return future
            if self.state is not ConnectionState.READY:
                self._outbox.append((fn, args, future))
                return future
            connection = self.connection

        assert connection is not None
        connection.add_callback_threadsafe(functools.partial(self._run_task, fn, args, future))
        return future

    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        assert self.connection is not None
        return self.connection.call_later(delay, callback)

    def remove_timeout(self, handle: Any) -> None:
        if self.connection is not None:
            self.connection.remove_timeout(handle)

    def new_channel(self) -> BlockingChannel:
        assert self.connection is not None
        return self.connection.channel()

    def in_io_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def close(self) -> None:
        with self._lock:
            if self.state is ConnectionState.UNINITIALIZED:
                self.state = ConnectionState.CLOSED
                return
            if self.state is ConnectionState.CLOSED:
                return
            self._closing.set()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(self.join_timeout)

    def _run(self) -> None:
        self.logger.info(
            "Connecting to RabbitMQ at %s:%s%s",
            self._parameters.host,
            self._parameters.port,
            self._parameters.virtual_host,
        )
        try:
            connection = self._connection_factory(self._parameters)
            channel = connection.channel()
        except pika.exceptions.AMQPError as exc:
            self.logger.critical("Failed to establish RabbitMQ connection: %s", exc)
            self._fail(exc)
            return

        with self._lock:
            self.connection = connection
            self.channel = channel
            if not self._closing.is_set():
                self.state = ConnectionState.READY
        self.logger.info("Connected to RabbitMQ.")
        self.ready.set()

        try:
            self._flush_outbox()
            while not self._closing.is_set():
                connection.process_data_events(time_limit=self.poll_interval)
        except Exception as exc:
            if not self._closing.is_set():
                self.logger.critical("RabbitMQ connection failed: %s", exc, exc_info=True)
                self._fail(exc)
                return
        self._shutdown()

    def _flush_outbox(self) -> None:
        while True:
            with self._lock:
                if not self._outbox:
                    return
                fn, args, future = self._outbox.popleft()
            self._run_task(fn, args, future)

    def _run_task(self, fn: Callable[..., Any], args: Tuple[Any, ...], future: "Future[Any]") -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(self.channel, *args)
        except Exception as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    def _shutdown(self) -> None:
        try:
            if self.channel is not None and not self.channel.is_closed:
                self.channel.close()
                self.logger.info("Closed RabbitMQ channel.")

            if self.connection is not None and not self.connection.is_closed:
                self.connection.close()
                self.logger.info("Closed RabbitMQ connection.")
        finally:
            self._mark_closed(ConnectionClosedError("RabbitMQ connection is closed"))

    def _fail(self, exc: BaseException) -> None:
        self._mark_closed(exc)
        self._on_fatal(exc)

    def _mark_closed(self, exc: BaseException) -> None:
        with self._lock:
            self.state = ConnectionState.CLOSED
            pending = list(self._outbox)
            self._outbox.clear()
        for _fn, _args, future in pending:
            if future.set_running_or_notify_cancel():
                future.set_exception(exc)

    def __enter__(self) -> RabbitMQConnection:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
