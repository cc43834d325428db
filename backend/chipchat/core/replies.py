"""
Reply correlation: "ask a question, resume on the answer".

A ReplyListener waits for the next qualifying message in one conversation.
Handlers are either callables or names registered in a CallbackRegistry,
so a resume point can be referenced by a plain string (for example one
stored in conversation metadata).
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from .events import call_handler
from .models import Id, Message, ReplyListener

log = logging.getLogger("chipchat.replies")

Handler = Callable[..., Any]


class CallbackRegistry:
    """Named handlers, resolvable by string identity."""

    def __init__(self) -> None:
        self._callbacks: dict[str, Handler] = {}

    def register(self, name: str, callback: Handler) -> None:
        self._callbacks[name] = callback

    def resolve(self, handler: str | Handler) -> Handler:
        if isinstance(handler, str):
            try:
                return self._callbacks[handler]
            except KeyError:
                raise KeyError(f"No callback registered as {handler!r}") from None
        return handler

    def __contains__(self, name: object) -> bool:
        return name in self._callbacks


class ReplyCorrelator:
    """Outstanding reply listeners, in registration order."""

    def __init__(self, callbacks: CallbackRegistry) -> None:
        self._callbacks = callbacks
        self._last_id = 0
        self._listeners: list[ReplyListener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    @property
    def listeners(self) -> list[ReplyListener]:
        return list(self._listeners)

    def add(self, conversation_id: Id, message_id: Id | None, handler: str | Handler) -> int:
        self._last_id += 1
        log.debug("add reply listener %d conversation=%s message=%s", self._last_id, conversation_id, message_id)
        self._listeners.append(ReplyListener(
            id=self._last_id,
            conversation_id=conversation_id,
            message_id=message_id,
            handler=handler,
        ))
        return self._last_id

    def remove(self, listener_id: int) -> ReplyListener | None:
        for listener in self._listeners:
            if listener.id == listener_id:
                self._listeners.remove(listener)
                log.debug("removed reply listener %d", listener_id)
                return listener
        return None

    async def resolve(self, message: Message) -> bool:
        """Fire, then drop, every listener waiting on the message's conversation.

        Returns True if any listener fired.
        """
        replied = False
        for listener in list(self._listeners):
            if listener.conversation_id != message.conversation:
                continue
            if not any(l.id == listener.id for l in self._listeners):
                continue  # removed by an earlier handler
            handler = self._callbacks.resolve(listener.handler)
            await call_handler(handler, message)
            self.remove(listener.id)
            replied = True
        return replied
