"""Connection and per-operation options for the Rabbit module."""

from __future__ import annotations

import enum
import logging
import ssl
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import unquote

import pika

from cisl_io.errors import ConfigurationError

DEFAULT_EXCHANGE = "amq.topic"
DEFAULT_RPC_TIMEOUT_MS = 3000
DEFAULT_MGMT_PORT = 15672
EVENT_EXCHANGE = "amq.rabbitmq.event"

_CAMEL_KEYS = {
    "mgmtUrl": "mgmt_url",
    "mgmtHostname": "mgmt_hostname",
    "mgmtPort": "mgmt_port",
    "mgmtUsername": "mgmt_username",
    "mgmtPassword": "mgmt_password",
    "mgmtSsl": "mgmt_ssl",
    "ssl": "tls",
}


@dataclass(frozen=True)
class RabbitOptions:
    """Resolved broker connection settings.

    Build from a config section with :meth:`from_mapping`; a ``url`` is split
    into hostname, port and vhost, and explicitly provided fields win over it.
    """

    url: Optional[str] = None
    hostname: str = "localhost"
    port: Optional[int] = None
    username: str = "guest"
    password: str = "guest"
    exchange: str = DEFAULT_EXCHANGE
    vhost: str = "/"
    prefix: Optional[str] = None
    tls: bool = False
    cert: Optional[str] = None
    key: Optional[str] = None
    ca: Optional[str] = None
    passphrase: Optional[str] = None
    mgmt_url: Optional[str] = None
    mgmt_hostname: Optional[str] = None
    mgmt_port: Optional[int] = None
    mgmt_username: Optional[str] = None
    mgmt_password: Optional[str] = None
    mgmt_ssl: bool = False

    @classmethod
    def from_mapping(cls, section: Optional[Mapping[str, Any]]) -> RabbitOptions:
        known = {f.name for f in fields(cls)}
        explicit: Dict[str, Any] = {}
        for raw_key, value in (section or {}).items():
            key = _CAMEL_KEYS.get(raw_key, raw_key)
            if key not in known:
                logging.getLogger(__name__).debug("Ignoring unknown rabbit option %s", raw_key)
                continue
            if key == "tls":
                explicit["tls"] = bool(explicit.get("tls")) or value is True
                continue
            explicit[key] = value

        options = cls()
        url = explicit.get("url")
        if url:
            options = replace(options, **_parse_url(url))
        options = replace(options, **explicit)

        if options.tls and not (options.cert or options.key or options.ca):
            raise ConfigurationError("Missing arguments for using SSL for RabbitMQ")
        return options

    def connection_parameters(self) -> pika.ConnectionParameters:
        port = self.port or (5671 if self.tls else 5672)
        ssl_options = None
        if self.tls:
            ssl_options = pika.SSLOptions(self._ssl_context(), server_hostname=self.hostname)
        return pika.ConnectionParameters(
            host=self.hostname,
            port=port,
            virtual_host=self.vhost,
            credentials=pika.PlainCredentials(self.username, self.password),
            ssl_options=ssl_options,
            heartbeat=600,
            blocked_connection_timeout=300,
        )

    def _ssl_context(self) -> ssl.SSLContext:
        if self.key and not self.cert:
            raise ConfigurationError("A TLS key requires a matching cert")
        context = ssl.create_default_context(cafile=self.ca)
        if self.cert:
            context.load_cert_chain(self.cert, keyfile=self.key, password=self.passphrase)
        return context

    @property
    def management_url(self) -> str:
        """Base URL of the broker management HTTP API, without credentials."""
        if self.mgmt_url:
            return self.mgmt_url.rstrip("/")
        scheme = "https" if self.mgmt_ssl else "http"
        host = self.mgmt_hostname or self.hostname
        port = self.mgmt_port or DEFAULT_MGMT_PORT
        return f"{scheme}://{host}:{port}/api"

    @property
    def management_auth(self) -> Tuple[str, str]:
        return (self.mgmt_username or self.username, self.mgmt_password or self.password)

    def resolve_topic(self, topic: str) -> str:
        if self.prefix:
            return f"{self.prefix}.{topic}"
        return topic


def _parse_url(url: str) -> Dict[str, Any]:
    parsed: Dict[str, Any] = {}
    rest = url
    for scheme in ("amqps://", "amqp://"):
        if rest.startswith(scheme):
            if scheme == "amqps://":
                parsed["tls"] = True
            rest = rest[len(scheme):]
            break

    if "@" in rest:
        userinfo, rest = rest.rsplit("@", 1)
        username, _, password = userinfo.partition(":")
        parsed["username"] = unquote(username)
        if password:
            parsed["password"] = unquote(password)

    sep = rest.rfind("/")
    if sep > -1:
        vhost = unquote(rest[sep + 1:])
        if vhost:
            parsed["vhost"] = vhost
        rest = rest[:sep]

    hostname, _, port = rest.partition(":")
    if hostname:
        parsed["hostname"] = hostname
    if port:
        try:
            parsed["port"] = int(port)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid RabbitMQ URL provided: {url}") from exc
    return parsed


class AckMode(enum.Enum):
    """How requests delivered to an RPC responder are acknowledged."""

    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class PublishOptions:
    """Per-message publish options.

    ``expiration`` is the RPC timeout in milliseconds; ``reply_to`` opts an
    RPC call out of reply matching.
    """

    content_type: Optional[str] = None
    correlation_id: Optional[str] = None
    reply_to: Optional[str] = None
    expiration: Optional[int] = None
    headers: Dict[str, Any] = field(default_factory=dict)
    delivery_mode: Optional[int] = None
    priority: Optional[int] = None
    message_id: Optional[str] = None
    app_id: Optional[str] = None


@dataclass(frozen=True)
class OnTopicOptions:
    content_type: Optional[str] = None
    exchange: Optional[str] = None


@dataclass(frozen=True)
class OnRpcOptions:
    """Responder options.

    All responders share the channel prefetch of 1 unless ``dedicated_channel``
    gives this responder a channel of its own.
    """

    content_type: Optional[str] = None
    exclusive: bool = True
    ack_mode: AckMode = AckMode.AUTO
    dedicated_channel: bool = False


@dataclass(frozen=True)
class OnQueueOptions:
    content_type: Optional[str] = None
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False
    arguments: Optional[Dict[str, Any]] = None
