"""Message envelope and subscription handles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

import pika


T = TypeVar("T")


@dataclass(frozen=True)
class MessageFields:
    """Delivery metadata assigned by the broker."""

    delivery_tag: int = 0
    redelivered: bool = False
    exchange: str = ""
    routing_key: str = ""
    consumer_tag: Optional[str] = None

    @classmethod
    def from_method(cls, method: Any) -> MessageFields:
        return cls(
            delivery_tag=method.delivery_tag,
            redelivered=bool(method.redelivered),
            exchange=method.exchange,
            routing_key=method.routing_key,
            consumer_tag=getattr(method, "consumer_tag", None),
        )


@dataclass
class RabbitMessage(Generic[T]):
    """A delivered message.

    ``content`` holds the decoded value; when decoding failed it holds the raw
    ``body`` unchanged.
    """

    content: T
    body: bytes = b""
    fields: MessageFields = field(default_factory=MessageFields)
    properties: pika.BasicProperties = field(default_factory=pika.BasicProperties)

    @property
    def correlation_id(self) -> Optional[str]:
        return self.properties.correlation_id

    @property
    def reply_to(self) -> Optional[str]:
        return self.properties.reply_to

    @property
    def content_type(self) -> Optional[str]:
        return self.properties.content_type

    @property
    def headers(self) -> Dict[str, Any]:
        return self.properties.headers or {}


@dataclass
class Subscription:
    """A bound consumer; ``unsubscribe`` cancels it by consumer tag.

    Cancellation is fire-and-forget: it schedules the cancel and returns
    without waiting for the broker to confirm it.
    """

    consumer_tag: str
    queue: str
    _cancel: Callable[[str], None] = field(repr=False)
    cancelled: bool = False

    def unsubscribe(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._cancel(self.consumer_tag)
