"""Content-type based body codec."""

from .content_codec import (
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_NUMBER,
    CONTENT_TYPE_OCTET_STREAM,
    CONTENT_TYPE_STRING,
    ContentCodec,
)

__all__ = [
    "ContentCodec",
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_NUMBER",
    "CONTENT_TYPE_OCTET_STREAM",
    "CONTENT_TYPE_STRING",
]
