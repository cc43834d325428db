"""
chipchat — webhook-driven bot SDK for the ChatShipper conversational platform.
"""

__version__ = "1.0.0"

from .config import Config
from .core.actions import ActionsContext, ConversationView
from .core.bot import ChipChat
from .core.errors import (
    ChipChatError,
    IntegrityError,
    MalformedPayloadError,
    MissingConversationError,
    PipelineError,
    UpstreamError,
)
from .core.models import Auth, Conversation, Message, Organization

__all__ = [
    "ActionsContext",
    "Auth",
    "ChipChat",
    "ChipChatError",
    "Config",
    "Conversation",
    "ConversationView",
    "IntegrityError",
    "MalformedPayloadError",
    "Message",
    "MissingConversationError",
    "Organization",
    "PipelineError",
    "UpstreamError",
]
