"""Unified access point for RabbitMQ topic pub/sub, RPC and attached capabilities."""

from .config import Config
from .connection import RabbitMQConnection
from .contracts import IContentCodec, IRabbitMQConnection, IReplyPublisher
from .io import Io
from .io_dependencies import IoDependencies
from .rabbit import (
    AckMode,
    OnQueueOptions,
    OnRpcOptions,
    OnTopicOptions,
    PublishOptions,
    Rabbit,
    RabbitMessage,
    RabbitOptions,
    Subscription,
)

__all__ = [
    "AckMode",
    "Config",
    "IContentCodec",
    "IRabbitMQConnection",
    "IReplyPublisher",
    "Io",
    "IoDependencies",
    "OnQueueOptions",
    "OnRpcOptions",
    "OnTopicOptions",
    "PublishOptions",
    "Rabbit",
    "RabbitMQConnection",
    "RabbitMessage",
    "RabbitOptions",
    "Subscription",
]
