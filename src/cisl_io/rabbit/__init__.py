"""Topic pub/sub and RPC over RabbitMQ."""

from cisl_io.management import QueueState

from .message import MessageFields, RabbitMessage, Subscription
from .options import (
    AckMode,
    OnQueueOptions,
    OnRpcOptions,
    OnTopicOptions,
    PublishOptions,
    RabbitOptions,
)
from .rabbit import Rabbit
from .rpc_caller import PendingCall, RpcCaller
from .rpc_responder import Reply, RpcResponder
from .topic_channel import TopicChannel

__all__ = [
    "AckMode",
    "MessageFields",
    "OnQueueOptions",
    "OnRpcOptions",
    "OnTopicOptions",
    "PendingCall",
    "PublishOptions",
    "QueueState",
    "Rabbit",
    "RabbitMessage",
    "RabbitOptions",
    "Reply",
    "RpcCaller",
    "RpcResponder",
    "Subscription",
    "TopicChannel",
]
