"""
RestClient — httpx-based client for the platform REST API.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .base import ResourceClient

log = logging.getLogger("chipchat.client")

API_VERSION = "v2"


class RestClient(ResourceClient):
    client_id = "rest"

    def __init__(
        self,
        host: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.host = host.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=f"{self.host}/{API_VERSION}/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        log.debug("%s %s", method, path)
        response = await self._http.request(method, path, params=params, json=json)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    async def close(self) -> None:
        await self._http.aclose()

    def __repr__(self) -> str:
        return f"RestClient(host={self.host!r})"
