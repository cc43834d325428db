"""
Receive / send middleware pipelines.

A step is called as step(bot, payload, next). It proceeds by calling
next(), fails by calling next(error), and aborts the chain silently by
returning without calling next at all. Steps may be coroutine functions.

    async def only_chat(bot, payload, next):
        if payload["data"]["message"].get("type") == "chat":
            next()
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from .errors import PipelineError
from .events import call_handler

log = logging.getLogger("chipchat.middleware")

Step = Callable[..., Any]


class Pipeline:
    """An ordered chain of middleware steps."""

    def __init__(self, name: str, steps: Iterable[Step] = ()) -> None:
        self.name = name
        self._steps: list[Step] = []
        self.use(*steps)

    def use(self, *steps: Step | Iterable[Step]) -> "Pipeline":
        for step in steps:
            if callable(step):
                self._steps.append(step)
            else:
                self.use(*step)
        return self

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    async def run(self, *args: Any) -> bool:
        """Run every step in order.

        Returns True if the chain ran to the end, False if a step aborted it.
        Raises PipelineError if a step passed an error to next() or raised.
        """
        for index, step in enumerate(list(self._steps)):
            outcome: dict[str, Any] = {}

            def next(err: Any = None, _outcome: dict[str, Any] = outcome) -> None:
                _outcome.setdefault("called", True)
                if err is not None:
                    _outcome.setdefault("error", err)

            try:
                await call_handler(step, *args, next)
            except Exception as e:
                raise PipelineError(
                    f"{self.name} middleware processing error: {e}", cause=e
                ) from e

            if "error" in outcome:
                err = outcome["error"]
                raise PipelineError(
                    f"{self.name} middleware processing error: {err}",
                    cause=err if isinstance(err, Exception) else None,
                )
            if not outcome:
                log.debug("%s chain stopped at step %d (%s)", self.name, index, getattr(step, "__name__", step))
                return False
        return True


def ignore_self() -> Step:
    """Receive step dropping messages sent by the bot's own user."""
    def ignore_self_step(bot: Any, payload: dict, next: Callable[..., None]) -> None:
        message = _payload_message(payload)
        user = bot.auth.user if bot.auth is not None else None
        if message is not None and user and message.get("user") == user:
            log.debug("ignore self %s", message.get("text"))
            return
        next()
    return ignore_self_step


def ignore_bots() -> Step:
    """Receive step dropping messages authored by any bot."""
    def ignore_bots_step(bot: Any, payload: dict, next: Callable[..., None]) -> None:
        message = _payload_message(payload)
        if message is not None and message.get("role") == "bot":
            log.debug("ignore bots %s", message.get("user"))
            return
        next()
    return ignore_bots_step


def _payload_message(payload: dict) -> dict | None:
    if not str(payload.get("event", "")).startswith("message"):
        return None
    message = (payload.get("data") or {}).get("message")
    return message if isinstance(message, dict) else None
