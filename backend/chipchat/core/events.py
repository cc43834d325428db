"""
Hierarchical event routing for chipchat.

Event names are dot-separated segments, e.g. "message.create.contact.chat".
Subscription patterns may use wildcard segments:

    *    exactly one segment        "message.create.*.chat"
    **   zero or more segments      "message.**"

Subscriptions live in a segment trie. An emission collects every matching
subscription and calls them in subscription order. Handlers may be plain
functions or coroutine functions; coroutines are awaited in turn, so an
exception raised by a handler propagates out of emit().
"""

from __future__ import annotations

import inspect
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from .matcher import match

log = logging.getLogger("chipchat.router")

WILDCARD = "*"
GLOBSTAR = "**"

Handler = Callable[..., Any]


@dataclass(eq=False)
class Subscription:
    seq: int
    pattern: str
    callback: Handler
    conditionals: dict[str, Any] = field(default_factory=dict)
    once: bool = False

    def accepts(self, *args: Any) -> bool:
        """Whether conditionals pass for a (message, ctx, ...) emission."""
        if not self.conditionals:
            return True
        m = args[0] if args else None
        c = args[1] if len(args) > 1 else None
        if not match(c, m, self.conditionals):
            return False
        log.debug("matched conditionals %s", list(self.conditionals))
        return True


@dataclass
class _Node:
    children: dict[str, "_Node"] = field(default_factory=dict)
    subscriptions: list[Subscription] = field(default_factory=list)


async def call_handler(handler: Handler, *args: Any) -> Any:
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class EventRouter:
    """Segment-trie event bus with wildcard subscriptions."""

    def __init__(self) -> None:
        self._root = _Node()
        self._seq = itertools.count()

    # ── Subscribing ────────────────────────────────────────────────────────

    def on(
        self,
        events: str | Iterable[str],
        conditionals: Mapping[str, Any] | Handler | None = None,
        handler: Handler | None = None,
        *,
        once: bool = False,
    ) -> "EventRouter":
        """Subscribe `handler` to one or more event patterns.

        Called as on(event, handler) or on(event, conditionals, handler).
        """
        if handler is None:
            if not callable(conditionals):
                raise TypeError("on() requires a handler")
            handler, conditionals = conditionals, None
        for event in [events] if isinstance(events, str) else list(events):
            node = self._root
            for segment in event.split("."):
                node = node.children.setdefault(segment, _Node())
            node.subscriptions.append(Subscription(
                seq=next(self._seq), pattern=event, callback=handler,
                conditionals=dict(conditionals or {}), once=once,
            ))
            log.debug("on %s", event)
        return self

    def once(
        self,
        events: str | Iterable[str],
        conditionals: Mapping[str, Any] | Handler | None = None,
        handler: Handler | None = None,
    ) -> "EventRouter":
        return self.on(events, conditionals, handler, once=True)

    def off(self, event: str, handler: Handler) -> bool:
        """Remove the first subscription of `handler` on exactly `event`."""
        node = self._find(event)
        if node is None:
            return False
        for sub in node.subscriptions:
            if sub.callback is handler:
                node.subscriptions.remove(sub)
                return True
        return False

    def remove_all_listeners(self, event: str | None = None) -> None:
        if event is None:
            self._root = _Node()
            return
        node = self._find(event)
        if node is not None:
            node.subscriptions.clear()

    def _find(self, pattern: str) -> _Node | None:
        node: _Node | None = self._root
        for segment in pattern.split("."):
            node = node.children.get(segment)
            if node is None:
                return None
        return node

    # ── Emitting ───────────────────────────────────────────────────────────

    def _collect(self, node: _Node, segments: list[str], i: int, out: dict[int, Subscription]) -> None:
        if i == len(segments):
            for sub in node.subscriptions:
                out[id(sub)] = sub
            globstar = node.children.get(GLOBSTAR)
            if globstar is not None:
                self._collect(globstar, segments, i, out)
            return
        exact = node.children.get(segments[i])
        if exact is not None:
            self._collect(exact, segments, i + 1, out)
        wildcard = node.children.get(WILDCARD)
        if wildcard is not None:
            self._collect(wildcard, segments, i + 1, out)
        globstar = node.children.get(GLOBSTAR)
        if globstar is not None:
            for j in range(i, len(segments) + 1):
                self._collect(globstar, segments, j, out)

    def _matching(self, event: str) -> list[Subscription]:
        found: dict[int, Subscription] = {}
        self._collect(self._root, event.split("."), 0, found)
        return sorted(found.values(), key=lambda s: s.seq)

    def listeners(self, event: str) -> list[Handler]:
        """Handlers an emission of `event` would reach, in call order."""
        return [sub.callback for sub in self._matching(event)]

    def has_listeners(self, event: str) -> bool:
        return bool(self._matching(event))

    async def emit(self, event: str, *args: Any) -> bool:
        """Call every subscription matching `event`. True if any was reached."""
        subscriptions = self._matching(event)
        for sub in subscriptions:
            if not sub.accepts(*args):
                continue
            # a once subscription is consumed only by an emission it accepts
            if sub.once and not self._unsubscribe(sub):
                continue
            await call_handler(sub.callback, *args)
        return bool(subscriptions)

    def _unsubscribe(self, sub: Subscription) -> bool:
        node = self._find(sub.pattern)
        if node is None or sub not in node.subscriptions:
            return False
        node.subscriptions.remove(sub)
        return True
