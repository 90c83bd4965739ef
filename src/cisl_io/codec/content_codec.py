"""Encodes application values into message bodies and back."""

from __future__ import annotations

import json
from typing import Any, Optional

from cisl_io.contracts import IContentCodec

CONTENT_TYPE_OCTET_STREAM = "application/octet-stream"
CONTENT_TYPE_NUMBER = "text/number"
CONTENT_TYPE_STRING = "text/string"
CONTENT_TYPE_JSON = "application/json"

_BINARY_TYPES = (bytes, bytearray, memoryview)


class ContentCodec(IContentCodec):
    """Stateless codec keyed on the content-type tag.

    Encoding is always selected by the value's runtime type; an explicit
    content type only changes the tag sent on the wire.
    """

    def content_type_for(self, value: Any) -> str:
        if isinstance(value, _BINARY_TYPES):
            return CONTENT_TYPE_OCTET_STREAM
        # bool is an int subclass but travels as JSON.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return CONTENT_TYPE_NUMBER
        if isinstance(value, str):
            return CONTENT_TYPE_STRING
        return CONTENT_TYPE_JSON

    def encode(self, value: Any) -> bytes:
        if isinstance(value, _BINARY_TYPES):
            return bytes(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value).encode("utf-8")
        if isinstance(value, str):
            return value.encode("utf-8")
        return json.dumps(value).encode("utf-8")

    def decode(self, body: bytes, content_type: Optional[str]) -> Any:
        if content_type == CONTENT_TYPE_JSON:
            try:
                return json.loads(body.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise ValueError("Failed to decode message body as JSON.") from exc
        if content_type == CONTENT_TYPE_STRING:
            return body.decode("utf-8")
        if content_type == CONTENT_TYPE_NUMBER:
            try:
                return float(body.decode("utf-8"))
            except (UnicodeDecodeError, ValueError) as exc:
                raise ValueError("Failed to decode message body as a number.") from exc
        return body
