"""RabbitMQ connection management."""

from .io_future import IoThreadFuture
from .rabbitmq_connection import ConnectionState, RabbitMQConnection

__all__ = ["ConnectionState", "IoThreadFuture", "RabbitMQConnection"]
