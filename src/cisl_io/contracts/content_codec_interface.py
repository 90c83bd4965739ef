"""Defines the contract for encoding and decoding message bodies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple


class IContentCodec(ABC):
    """Maps application values to message bodies and back by content-type tag."""

    @abstractmethod
    def content_type_for(self, value: Any) -> str:
        """Return the content-type tag inferred from the value's runtime type."""

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Convert a value into raw body bytes."""

    @abstractmethod
    def decode(self, body: bytes, content_type: Optional[str]) -> Any:
        """Convert raw body bytes into a value according to the content-type tag."""

    def pack(self, value: Any, content_type: Optional[str] = None) -> Tuple[bytes, str]:
        """Encode a value and resolve its content type, honouring an explicit override."""
        return self.encode(value), content_type or self.content_type_for(value)
