"""
Text triggers: (pattern, handler) pairs tested against inbound free text.

A str pattern matches the whole text, case-insensitively. A compiled
re.Pattern is searched anywhere in the text.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, Mapping

from .events import call_handler
from .matcher import match
from .models import Message, TextTrigger

log = logging.getLogger("chipchat.triggers")

MUTED_EVENT = "channel.notify"
TEXT_TYPES = ("chat", "postback")
TEXT_ROLES = ("contact", "agent")

Pattern = str | re.Pattern


def qualifies(event_type: str, message: Message) -> bool:
    """Whether a message is eligible for text triggers and reply listeners."""
    return (
        event_type != MUTED_EVENT
        and message.type in TEXT_TYPES
        and bool(message.text)
        and message.role in TEXT_ROLES
    )


def pattern_matches(pattern: Pattern, text: str) -> bool:
    if isinstance(pattern, re.Pattern):
        return pattern.search(text) is not None
    return text.upper() == str(pattern).upper()


class TextTriggerRegistry:
    """Ordered trigger list; registration order is precedence order."""

    def __init__(self) -> None:
        self._triggers: list[TextTrigger] = []

    def __len__(self) -> int:
        return len(self._triggers)

    @property
    def triggers(self) -> list[TextTrigger]:
        return list(self._triggers)

    def add(
        self,
        patterns: Pattern | Iterable[Pattern],
        conditionals: Mapping[str, Any] | None,
        handler: Callable[..., Any],
    ) -> list[TextTrigger]:
        if isinstance(patterns, (str, re.Pattern)):
            patterns = [patterns]
        added = [
            TextTrigger(pattern=p, conditionals=dict(conditionals or {}), handler=handler)
            for p in patterns
        ]
        self._triggers.extend(added)
        return added

    def remove(self, pattern: Pattern) -> TextTrigger | None:
        """Remove the first trigger registered with `pattern`."""
        for trigger in self._triggers:
            if trigger.pattern is pattern or trigger.pattern == pattern:
                self._triggers.remove(trigger)
                return trigger
        return None

    async def dispatch(self, message: Message, ctx: Any, only_first_match: bool = False) -> bool:
        """Fire matching triggers in order.

        Any pattern match marks the context as captured. Returns True if at
        least one handler passed its conditionals and was called.
        """
        claimed = False
        text = message.text or ""
        for trigger in list(self._triggers):
            log.debug("matching %r with %r", text, trigger.pattern)
            if not pattern_matches(trigger.pattern, text):
                continue
            log.debug("matches %r", trigger.pattern)
            if ctx is not None:
                ctx.captured = True
            if match(ctx, message, trigger.conditionals):
                claimed = True
                await call_handler(trigger.handler, message, ctx)
            if only_first_match:
                break
        return claimed
