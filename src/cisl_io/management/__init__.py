"""Broker management HTTP API client."""

from .management_client import ManagementClient, QueueState

__all__ = ["ManagementClient", "QueueState"]
