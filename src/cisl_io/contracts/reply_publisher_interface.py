"""Defines the contract for publishing RPC replies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from pika.adapters.blocking_connection import BlockingChannel


class IReplyPublisher(ABC):
    """Publishes RPC replies back to the requester's reply queue."""

    @abstractmethod
    def publish(
        self,
        *,
        channel: BlockingChannel,
        reply_to: str,
        correlation_id: Optional[str],
        response: Any,
        content_type: Optional[str] = None,
    ) -> None:
        """Send a successful reply message."""

    @abstractmethod
    def publish_error(
        self,
        *,
        channel: BlockingChannel,
        reply_to: str,
        correlation_id: Optional[str],
        error: BaseException,
    ) -> None:
        """Send an error reply carrying the message text in the ``error`` header."""
