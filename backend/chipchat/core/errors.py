"""
Error kinds for chipchat.

None of these are raised out of ChipChat.ingest(). The bot emits them on its
own "error" event; subscribe with bot.on("error", handler) to observe them.
"""

from __future__ import annotations


class ChipChatError(Exception):
    """Base for all errors signalled by the bot."""

    type: str = "bot"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.type!r}, message={self.message!r})"


class IntegrityError(ChipChatError):
    """Webhook signature did not match the payload."""

    type = "ingest"


class MalformedPayloadError(ChipChatError):
    """Payload is missing the event, conversation or message fields."""

    type = "ingest"


class UpstreamError(ChipChatError):
    """A call through the resource client failed (e.g. organization preload)."""

    type = "upstream"


class PipelineError(ChipChatError):
    """A middleware step reported failure or raised."""

    type = "middleware"


class MissingConversationError(ChipChatError):
    """Conversation is not known to the cache."""

    type = "actions"

    def __init__(self, conversation_id: object, cause: Exception | None = None) -> None:
        super().__init__(f"missing conversation {conversation_id}", cause)
        self.conversation_id = conversation_id
