"""
Pydantic data models for chipchat.

These mirror the platform's webhook JSON. Every model allows extra fields:
the platform sends far more than the dispatch engine needs, and handlers
may read any of it.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

Id = Union[str, int]


class Organization(BaseModel):
    """An organization profile, cached when preloading is enabled."""
    model_config = ConfigDict(extra="allow")

    id: Id


class Conversation(BaseModel):
    """Latest known snapshot of a conversation. Mutated in place by set()."""
    model_config = ConfigDict(extra="allow")

    id: Id
    organization: Any = None          # id, or an embedded organization object
    meta: dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    """A single inbound message. Never stored past its dispatch."""
    model_config = ConfigDict(extra="allow")

    id: Id | None = None
    conversation: Id | None = None
    user: str | None = None
    role: str | None = None           # contact | agent | bot | system
    type: str | None = None           # chat | postback | command | mention | ...
    text: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class MessageEventData(BaseModel):
    """The `data` block of a message.* webhook."""
    model_config = ConfigDict(extra="allow")

    conversation: Conversation
    message: Message

    @model_validator(mode="after")
    def _default_message_conversation(self) -> "MessageEventData":
        if self.message.conversation is None:
            self.message.conversation = self.conversation.id
        return self


class MessageEvent(BaseModel):
    """A message-shaped webhook payload (event starts with 'message')."""
    model_config = ConfigDict(extra="allow")

    event: str
    data: MessageEventData


class Auth(BaseModel):
    """Bot identity decoded from the API token."""
    user: str | None = None
    organization: str | None = None
    iat: int | None = None
    exp: int | None = None


class ReplyListener(BaseModel):
    """An outstanding 'waiting for an answer' registration."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: int
    conversation_id: Id
    message_id: Id | None = None
    handler: Any                      # callable, or a registered callback name


class TextTrigger(BaseModel):
    """A (pattern, handler) pair tested against inbound free text."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    pattern: Any                      # str (case-insensitive literal) or re.Pattern
    conditionals: dict[str, Any] = Field(default_factory=dict)
    handler: Any
