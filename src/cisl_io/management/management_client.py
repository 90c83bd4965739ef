"""Simple HTTP client for the RabbitMQ management API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple
from urllib.parse import quote

import httpx

from cisl_io.errors import ManagementError

if TYPE_CHECKING:
    from cisl_io.rabbit.options import RabbitOptions


@dataclass(frozen=True)
class QueueState:
    name: str
    state: str


class ManagementClient:
    """Lightweight client wrapping :mod:`httpx`."""

    def __init__(
        self,
        base_url: str,
        *,
        vhost: str = "/",
        auth: Optional[Tuple[str, str]] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._vhost = vhost
        self._auth = auth
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_options(cls, options: RabbitOptions) -> ManagementClient:
        return cls(options.management_url, vhost=options.vhost, auth=options.management_auth)

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def get_queues(self) -> List[QueueState]:
        client = self._get_client()
        path = f"/queues/{quote(self._vhost, safe='')}"
        try:
            resp = client.get(path, params={"columns": "state,name"})
        except httpx.HTTPError as exc:
            raise ManagementError(f"Management API request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise ManagementError(resp.text)
        self.logger.debug("Fetched queue listing for vhost %s", self._vhost)
        return [
            QueueState(name=item.get("name", ""), state=item.get("state", ""))
            for item in resp.json()
        ]
