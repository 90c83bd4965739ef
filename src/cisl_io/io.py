"""The Io facade: one access point for messaging and attached capabilities."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from cisl_io.config import Config
from cisl_io.errors import NotInitializedError
from cisl_io.io_dependencies import IoDependencies
from cisl_io.rabbit import Rabbit, RabbitOptions

RABBIT_DEFAULTS = {
    "rabbit": {
        "username": "guest",
        "password": "guest",
        "exchange": "amq.topic",
        "vhost": "/",
        "hostname": "localhost",
    }
}


class Io:
    """Aggregates the configured modules and named capabilities.

    The Rabbit module is built when the configuration has a ``rabbit`` (or
    ``mq``) section; a value of ``true`` enables it with defaults.
    Capabilities are already-constructed objects passed in by name, e.g.
    ``Io(capabilities={"display": DisplayWorker(...)})``.
    """

    def __init__(
        self,
        config: Union[Config, Mapping[str, Any], None] = None,
        *,
        capabilities: Optional[Mapping[str, Any]] = None,
        cog_path: Union[str, Path, None] = None,
        dependencies: Optional[IoDependencies] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        if isinstance(config, Config):
            self.config = config
        elif config is not None:
            self.config = Config(config)
        else:
            self.config = Config.load(cog_path)

        deps = dependencies or IoDependencies()
        self._capabilities = dict(capabilities or {})
        self._rabbit: Optional[Rabbit] = None
        self._closed = False

        if self.config.has_value("rabbit"):
            section = self.config.get("rabbit")
            # Only keys present in the cog file count as explicit over the url.
            options = RabbitOptions.from_mapping(section if isinstance(section, Mapping) else None)
            self.config.defaults(RABBIT_DEFAULTS)
            self._rabbit = Rabbit(
                options,
                connection=deps.make_connection(options),
                codec=deps.make_codec(),
                management=deps.make_management_client(options),
                generate_id=self.generate_uuid,
            )
            self.logger.info("Rabbit module initialised for %s", options.hostname)

    @property
    def rabbit(self) -> Rabbit:
        if self._rabbit is None:
            raise NotInitializedError("Rabbit has not been initialized")
        return self._rabbit

    @property
    def capabilities(self) -> Mapping[str, Any]:
        return MappingProxyType(self._capabilities)

    def has_capability(self, name: str) -> bool:
        return name in self._capabilities

    def capability(self, name: str) -> Any:
        try:
            return self._capabilities[name]
        except KeyError:
            raise NotInitializedError(f"Capability {name!r} has not been attached") from None

    def generate_uuid(self) -> str:
        return str(uuid.uuid1())

    def close(self) -> None:
        """Close every connection the facade opened; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._rabbit is not None:
            self._rabbit.close()
        for name, capability in self._capabilities.items():
            close = getattr(capability, "close", None)
            if callable(close):
                self.logger.debug("Closing capability %s", name)
                close()

    def __enter__(self) -> Io:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
