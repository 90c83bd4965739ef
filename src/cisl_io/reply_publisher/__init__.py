"""Publishers for RPC replies."""

from .rabbitmq_reply_publisher import RabbitMQReplyPublisher

__all__ = ["RabbitMQReplyPublisher"]
