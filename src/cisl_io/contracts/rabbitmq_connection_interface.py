"""Defines the contract for RabbitMQ connections."""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from types import TracebackType
from typing import Any, Callable, Optional, Type, TypeVar

from pika.adapters.blocking_connection import BlockingChannel

T = TypeVar("T")


class IRabbitMQConnection(ABC):
    """Represents a RabbitMQ connection owning one shared channel on an I/O thread.

    Work touching the channel must run on the I/O thread; ``submit`` schedules
    it there and returns a future for its result.
    """

    @abstractmethod
    def open(self) -> None:
        """Start connecting in the background."""

    @abstractmethod
    def submit(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        """Run ``fn(channel, *args)`` on the I/O thread once the channel is open."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        """Arm a timer on the I/O thread and return its handle."""

    @abstractmethod
    def remove_timeout(self, handle: Any) -> None:
        """Disarm a timer returned by ``call_later``."""

    @abstractmethod
    def new_channel(self) -> BlockingChannel:
        """Open an additional channel; only valid on the I/O thread."""

    @abstractmethod
    def in_io_thread(self) -> bool:
        """Whether the caller is running on the I/O thread."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection and associated resources."""

    @abstractmethod
    def __enter__(self) -> IRabbitMQConnection:
        """Enter a managed connection context."""

    @abstractmethod
    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Exit a managed connection context."""
