"""
Actions contexts: the per-dispatch view of a conversation handed to handlers.

A context exposes the cached conversation's fields (attribute or item
access) together with operations bound to that conversation:

    async def on_message(message, ctx):
        if ctx.captured:
            return
        await ctx.say(f"Echo: {message.text}")
        await ctx.assign(["agent-1"])

Contexts are rebuilt for every dispatch and never stored.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Callable, Iterable

from .errors import MissingConversationError, UpstreamError
from .events import call_handler
from .matcher import _field
from .models import Id, Message

if TYPE_CHECKING:
    from .bot import ChipChat

log = logging.getLogger("chipchat.actions")

_FIELD_KEY = re.compile(r"^@(.*)$")


class ConversationView:
    """Read-only field access over a conversation snapshot. Falsy when empty."""

    def __init__(self, data: dict[str, Any] | None = None, organization: Any = None) -> None:
        self._data: dict[str, Any] = dict(data or {})
        if data:
            self._data["organization"] = organization
        self.captured = False

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._data.get(name)

    def __getitem__(self, key: str) -> Any:
        if key == "captured":
            return self.captured
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key == "captured" or key in self._data

    def __bool__(self) -> bool:
        return bool(self._data)

    def keys(self) -> list[str]:
        return list(self._data)

    def to_dict(self) -> dict[str, Any]:
        return {**self._data, "captured": self.captured}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self._data.get('id')!r})"


def _as_list(value: Any) -> list | None:
    if not value:
        return None
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


class ActionsContext(ConversationView):
    """A conversation view plus command operations bound to it."""

    def __init__(self, bot: "ChipChat", conversation_id: Id) -> None:
        conversation = bot.conversations.load(conversation_id)
        organization = bot.organizations.get(conversation.organization) or conversation.organization
        super().__init__(dict(conversation), organization)
        self._bot = bot
        self._conversation_id = conversation_id

    @property
    def _conversation(self):
        return self._bot.conversations.load(self._conversation_id)

    async def say(self, content: str | dict[str, Any] | Message) -> Any:
        """Send arbitrary content to this conversation."""
        return await self._bot.send(self._conversation_id, content)

    async def command(self, text: str, meta: dict[str, Any] | None = None) -> Any:
        user = self._bot.auth.user if self._bot.auth is not None else None
        return await self._bot.send(
            self._conversation_id,
            {"text": text, "type": "command", "user": user, "meta": meta or {}},
        )

    async def accept(self) -> Any:
        return await self.command("/accept")

    async def join(self) -> Any:
        return await self.command("/join")

    async def leave(self) -> Any:
        return await self.command("/leave")

    async def assign(self, users: str | Iterable[str] | None) -> Any:
        users = _as_list(users)
        return await self.command("/assign", {"users": users} if users else {})

    async def notify(self, channels: Any = None, organizations: Any = None) -> Any:
        channels, organizations = _as_list(channels), _as_list(organizations)
        meta = {"channels": channels, "organizations": organizations} if channels or organizations else {}
        return await self.command("/notify", meta)

    def get(self, key: str) -> Any:
        """`@field` reads a conversation field; any other key reads meta."""
        conversation = self._conversation
        matches = _FIELD_KEY.match(key)
        if matches:
            value = _field(conversation, matches.group(1))
            if value is not None:
                return value
        return (conversation.meta or {}).get(key)

    async def set(self, key: str, value: Any) -> Any:
        """Update a conversation field (`@field`) or meta key, then sync it upstream."""
        conversation = self._conversation
        matches = _FIELD_KEY.match(key)
        if matches and _field(conversation, matches.group(1)) is not None:
            setattr(conversation, matches.group(1), value)
            self._data[matches.group(1)] = value
        else:
            conversation.meta[key] = value
        return await self.command(f"/set {key} {value}")

    async def ask(self, question: str | dict[str, Any], handler: str | Callable[..., Any]) -> int | None:
        """Send a question and resume with `handler(answer, ctx)` on the next reply.

        `handler` may be a callable or the name of a registered callback.
        Returns the reply listener id, or None if the question could not be sent.
        """
        bot = self._bot
        conversation_id = self._conversation_id
        try:
            sent = await bot.send(conversation_id, question)
        except Exception as e:
            await bot.signal(UpstreamError(f"Could not send question to {conversation_id}: {e}", cause=e))
            return None
        if sent is None:
            return None
        message_id = _field(sent, "id")
        if message_id is None:
            await bot.signal(UpstreamError(f"Question sent to {conversation_id} came back without a message id"))
            return None
        await self.set(bot.asked_key, message_id)

        listener_id: int | None = None

        async def answered(message: Message) -> None:
            log.debug("ask answered %s", message.text)
            bot.remove_reply_listener(listener_id)
            ctx = await bot.actions(conversation_id)
            await call_handler(bot.callbacks.resolve(handler), message, ctx)

        listener_id = bot.on_reply(conversation_id, message_id, answered)
        return listener_id


def build_actions(bot: "ChipChat", conversation_id: Id | None) -> ConversationView:
    """Context for `conversation_id`, or an empty view if it is not cached."""
    if conversation_id is None or conversation_id not in bot.conversations:
        raise MissingConversationError(conversation_id)
    return ActionsContext(bot, conversation_id)
