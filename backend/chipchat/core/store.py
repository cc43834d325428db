"""
Process-local caches for conversations and organizations.

Stores are created with the bot and live for the process lifetime. Entries
are replaced by id and never evicted, so memory grows with the number of
distinct conversations seen. Swap in a bounded Store subclass if that
matters for a deployment.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from .models import Conversation, Id, Organization

log = logging.getLogger("chipchat.store")

T = TypeVar("T", Conversation, Organization)


class Store(ABC, Generic[T]):
    """Cache abstraction keyed by entity id."""

    @abstractmethod
    def save(self, item: T) -> None: ...

    @abstractmethod
    def get(self, item_id: Id | None) -> T | None: ...

    @abstractmethod
    def list(self) -> list[T]: ...

    @abstractmethod
    def delete(self, item_id: Id) -> None: ...

    def load(self, item_id: Id) -> T:
        item = self.get(item_id)
        if item is None:
            raise KeyError(f"Not cached: {item_id}")
        return item

    def __contains__(self, item_id: object) -> bool:
        return self.get(item_id) is not None  # type: ignore[arg-type]


class MemoryStore(Store[T]):
    """Plain dict-backed store."""

    def __init__(self) -> None:
        self._items: dict[Id, T] = {}

    def save(self, item: T) -> None:
        self._items[item.id] = item

    def get(self, item_id: Id | None) -> T | None:
        if item_id is None:
            return None
        try:
            return self._items.get(item_id)
        except TypeError:
            # unhashable ids (e.g. an embedded object) are never cached
            return None

    def list(self) -> list[T]:
        return list(self._items.values())

    def delete(self, item_id: Id) -> None:
        self._items.pop(item_id, None)

    def __len__(self) -> int:
        return len(self._items)


class ConversationStore(MemoryStore[Conversation]):
    """Latest conversation snapshots, keyed by conversation id."""

    def replace_if_cached(self, conversation: Conversation) -> bool:
        """Replace an existing entry with a newer snapshot. Unknown ids are ignored."""
        if conversation.id not in self._items:
            return False
        self._items[conversation.id] = conversation
        log.debug("conversation %s replaced from update event", conversation.id)
        return True


class OrganizationStore(MemoryStore[Organization]):
    """Preloaded organization profiles, keyed by organization id."""
