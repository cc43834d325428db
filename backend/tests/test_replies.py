"""Tests for reply correlation and the callback registry."""

import pytest

from chipchat.core.models import Message
from chipchat.core.replies import CallbackRegistry, ReplyCorrelator


def make_correlator():
    return ReplyCorrelator(CallbackRegistry())


def test_listener_ids_increase():
    replies = make_correlator()
    first = replies.add("c1", "m1", lambda m: None)
    second = replies.add("c2", "m2", lambda m: None)
    assert second == first + 1
    assert [l.id for l in replies.listeners] == [first, second]


def test_remove_by_id():
    replies = make_correlator()
    listener_id = replies.add("c1", "m1", lambda m: None)
    removed = replies.remove(listener_id)
    assert removed.conversation_id == "c1"
    assert replies.remove(listener_id) is None
    assert len(replies) == 0


@pytest.mark.asyncio
async def test_resolve_fires_every_listener_for_conversation_once():
    replies = make_correlator()
    seen = []
    replies.add("c1", "m1", lambda m: seen.append(("a", m.text)))
    replies.add("c2", "m2", lambda m: seen.append(("other", m.text)))
    replies.add("c1", "m3", lambda m: seen.append(("b", m.text)))

    assert await replies.resolve(Message(conversation="c1", text="yes")) is True
    assert seen == [("a", "yes"), ("b", "yes")]
    assert [l.conversation_id for l in replies.listeners] == ["c2"]

    assert await replies.resolve(Message(conversation="c1", text="again")) is False
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_named_callbacks_resolve_through_registry():
    callbacks = CallbackRegistry()
    replies = ReplyCorrelator(callbacks)
    seen = []

    async def on_answer(message):
        seen.append(message.text)

    callbacks.register("on-answer", on_answer)
    replies.add("c1", None, "on-answer")
    await replies.resolve(Message(conversation="c1", text="42"))
    assert seen == ["42"]


def test_unknown_callback_name():
    with pytest.raises(KeyError):
        CallbackRegistry().resolve("missing")


@pytest.mark.asyncio
async def test_listener_removed_by_earlier_handler_does_not_fire():
    replies = make_correlator()
    seen = []
    second_id = None

    def first(message):
        seen.append("first")
        replies.remove(second_id)

    replies.add("c1", None, first)
    second_id = replies.add("c1", None, lambda m: seen.append("second"))
    await replies.resolve(Message(conversation="c1", text="x"))
    assert seen == ["first"]
