"""Contract interfaces for cisl_io messaging."""

from .content_codec_interface import IContentCodec
from .rabbitmq_connection_interface import IRabbitMQConnection
from .reply_publisher_interface import IReplyPublisher

__all__ = [
    "IContentCodec",
    "IRabbitMQConnection",
    "IReplyPublisher",
]
