"""
ResourceClient ABC and MockClient for testing.

The bot reaches the platform's REST API only through this interface:
  - request(method, path, params, json) -> decoded JSON
  - send(conversation_id, message)      -> the created message
  - <resource>.get/list/create/update/delete for each platform resource
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from typing import Any, ClassVar

RESOURCES = (
    "users", "channels",
    "contacts", "conversations", "messages",
    "organizations", "orggroups", "services", "forms",
    "workflows", "metrics",
    "kbases", "kbitems", "articles", "files",
)


class Resource:
    """CRUD calls against one REST collection."""

    def __init__(self, client: "ResourceClient", name: str) -> None:
        self._client = client
        self.name = name

    async def get(self, resource_id: Any, params: dict[str, Any] | None = None) -> Any:
        return await self._client.request("GET", f"{self.name}/{resource_id}", params=params)

    async def list(self, params: dict[str, Any] | None = None) -> Any:
        return await self._client.request("GET", self.name, params=params)

    async def create(self, body: dict[str, Any], params: dict[str, Any] | None = None) -> Any:
        return await self._client.request("POST", self.name, params=params, json=body)

    async def update(self, resource_id: Any, body: dict[str, Any], params: dict[str, Any] | None = None) -> Any:
        return await self._client.request("PUT", f"{self.name}/{resource_id}", params=params, json=body)

    async def delete(self, resource_id: Any, params: dict[str, Any] | None = None) -> Any:
        return await self._client.request("DELETE", f"{self.name}/{resource_id}", params=params)

    def __repr__(self) -> str:
        return f"Resource({self.name!r})"


class ResourceClient(ABC):
    """Abstract base for platform API clients."""

    client_id: ClassVar[str]

    def __init__(self) -> None:
        for name in RESOURCES:
            setattr(self, name, Resource(self, name))

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any: ...

    async def send(self, conversation_id: Any, message: dict[str, Any]) -> Any:
        """Post a message into a conversation."""
        return await self.request("POST", f"conversations/{conversation_id}/messages", json=message)

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class MockClient(ResourceClient):
    """Scripted client for tests, no network.

    `responses` maps "METHOD path" to a value, a callable taking the request
    body, or an exception instance to raise. Unscripted POSTs echo the body
    back with a generated id; other unscripted calls return {"id": <last path segment>}.
    """

    client_id = "mock"

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        super().__init__()
        self.responses = dict(responses or {})
        self.calls: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        self.calls.append({"method": method, "path": path, "params": params, "json": json})
        key = f"{method} {path}"
        if key in self.responses:
            response = self.responses[key]
            if isinstance(response, Exception):
                raise response
            return response(json) if callable(response) else response
        if method == "POST":
            return {"id": f"mock-{next(self._ids)}", **(json or {})}
        return {"id": path.rsplit("/", 1)[-1]}

    @property
    def sent(self) -> list[dict[str, Any]]:
        """Bodies of every message posted through send()."""
        return [
            c["json"] for c in self.calls
            if c["method"] == "POST" and c["path"].endswith("/messages")
        ]
