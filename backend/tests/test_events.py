"""Tests for the hierarchical event router."""

import pytest

from chipchat.core.events import EventRouter


@pytest.mark.asyncio
async def test_exact_subscription(recorder):
    router = EventRouter()
    router.on("message.create.contact.chat", recorder.handler("exact"))
    assert await router.emit("message.create.contact.chat", "m") is True
    assert await router.emit("message.create.agent.chat", "m") is False
    assert recorder.calls == [("exact", ("m",))]


@pytest.mark.asyncio
async def test_single_segment_wildcard(recorder):
    router = EventRouter()
    router.on("message.create.*.chat", recorder.handler("star"))
    await router.emit("message.create.contact.chat")
    await router.emit("message.create.agent.chat")
    await router.emit("message.create.agent.command")
    await router.emit("message.create.chat")
    assert recorder.names() == ["star", "star"]


@pytest.mark.asyncio
async def test_globstar_matches_any_depth(recorder):
    router = EventRouter()
    router.on("message.**", recorder.handler("deep"))
    await router.emit("message")
    await router.emit("message.create")
    await router.emit("message.create.contact.chat.contact")
    await router.emit("conversation.update")
    assert recorder.names() == ["deep", "deep", "deep"]


@pytest.mark.asyncio
async def test_all_matches_fire_in_subscription_order(recorder):
    router = EventRouter()
    router.on("message.create.*.*", recorder.handler("first"))
    router.on("message.create.contact.chat", recorder.handler("second"))
    router.on("**", recorder.handler("third"))
    await router.emit("message.create.contact.chat")
    assert recorder.names() == ["first", "second", "third"]


@pytest.mark.asyncio
async def test_list_of_events(recorder):
    router = EventRouter()
    router.on(["a", "b"], recorder.handler("x"))
    await router.emit("a")
    await router.emit("b")
    assert recorder.names() == ["x", "x"]


@pytest.mark.asyncio
async def test_conditionals_gate_handler(recorder):
    router = EventRouter()
    router.on("message", {"type": "chat"}, recorder.handler("chat"))
    await router.emit("message", {"type": "chat"}, None)
    await router.emit("message", {"type": "postback"}, None)
    assert recorder.calls == [("chat", ({"type": "chat"}, None))]


@pytest.mark.asyncio
async def test_async_handlers_are_awaited():
    router = EventRouter()
    seen = []

    async def handler(value):
        seen.append(value)

    router.on("tick", handler)
    await router.emit("tick", 1)
    assert seen == [1]


@pytest.mark.asyncio
async def test_handler_exceptions_propagate():
    router = EventRouter()

    def boom(*args):
        raise RuntimeError("boom")

    router.on("tick", boom)
    with pytest.raises(RuntimeError):
        await router.emit("tick")


@pytest.mark.asyncio
async def test_once_and_off(recorder):
    router = EventRouter()
    handler = recorder.handler("h")
    router.once("tick", recorder.handler("once"))
    router.on("tick", handler)
    await router.emit("tick")
    await router.emit("tick")
    assert router.off("tick", handler) is True
    assert router.off("tick", handler) is False
    await router.emit("tick")
    assert recorder.names() == ["once", "h", "h"]


@pytest.mark.asyncio
async def test_once_waits_for_conditionals_to_pass(recorder):
    router = EventRouter()
    router.once("message", {"text": "second"}, recorder.handler("once"))
    await router.emit("message", {"text": "first"}, None)
    assert router.has_listeners("message")
    await router.emit("message", {"text": "second"}, None)
    await router.emit("message", {"text": "second"}, None)
    assert recorder.names() == ["once"]
    assert not router.has_listeners("message")


def test_listeners_in_call_order():
    router = EventRouter()
    a, b = (lambda: None), (lambda: None)
    router.on("x.*", a)
    router.on("x.y", b)
    assert router.listeners("x.y") == [a, b]
    assert router.listeners("z") == []


def test_on_requires_handler():
    with pytest.raises(TypeError):
        EventRouter().on("x", {"type": "chat"})
