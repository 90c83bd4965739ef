"""Configuration primitives for wiring an `Io` instance."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from cisl_io.codec import ContentCodec
from cisl_io.connection import RabbitMQConnection
from cisl_io.contracts import IContentCodec, IRabbitMQConnection
from cisl_io.management import ManagementClient
from cisl_io.rabbit.options import RabbitOptions


@dataclass(frozen=True)
class IoDependencies:
    """Bundles factory functions used when the facade builds its modules."""

    make_connection: Callable[[RabbitOptions], IRabbitMQConnection] = field(
        default=lambda options: RabbitMQConnection(options.connection_parameters())
    )
    make_codec: Callable[[], IContentCodec] = field(default=ContentCodec)
    make_management_client: Callable[[RabbitOptions], ManagementClient] = field(
        default=ManagementClient.from_options
    )
