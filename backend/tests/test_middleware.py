"""Tests for the middleware pipelines."""

import pytest

from chipchat.core.errors import PipelineError
from chipchat.core.middleware import Pipeline, ignore_bots, ignore_self
from chipchat.core.models import Auth

from conftest import make_payload


class FakeBot:
    def __init__(self, user="bot-user"):
        self.auth = Auth(user=user)


@pytest.mark.asyncio
async def test_steps_run_in_order():
    seen = []

    def first(bot, payload, next):
        seen.append("first")
        next()

    async def second(bot, payload, next):
        seen.append("second")
        next()

    assert await Pipeline("receive", [first, second]).run(FakeBot(), {}) is True
    assert seen == ["first", "second"]


@pytest.mark.asyncio
async def test_step_not_calling_next_aborts():
    seen = []

    def stop(bot, payload, next):
        seen.append("stop")

    def never(bot, payload, next):
        seen.append("never")
        next()

    assert await Pipeline("receive", [stop, never]).run(FakeBot(), {}) is False
    assert seen == ["stop"]


@pytest.mark.asyncio
async def test_next_with_error_raises_pipeline_error():
    def failing(bot, payload, next):
        next("nope")

    with pytest.raises(PipelineError, match="nope"):
        await Pipeline("receive", [failing]).run(FakeBot(), {})


@pytest.mark.asyncio
async def test_step_exception_becomes_pipeline_error():
    async def raising(bot, payload, next):
        raise ValueError("bad step")

    with pytest.raises(PipelineError) as info:
        await Pipeline("send", [raising]).run(FakeBot(), {})
    assert isinstance(info.value.cause, ValueError)
    assert info.value.type == "middleware"


def test_use_accepts_lists():
    def a(bot, payload, next): next()
    def b(bot, payload, next): next()

    pipeline = Pipeline("receive").use([a, b]).use(a)
    assert pipeline.steps == [a, b, a]
    assert len(pipeline) == 3


@pytest.mark.asyncio
async def test_ignore_self_drops_own_messages():
    pipeline = Pipeline("receive", [ignore_self()])
    assert await pipeline.run(FakeBot(), make_payload(user="bot-user")) is False
    assert await pipeline.run(FakeBot(), make_payload(user="someone")) is True


@pytest.mark.asyncio
async def test_ignore_self_passes_when_bot_has_no_identity():
    bot = FakeBot(user=None)
    assert await Pipeline("receive", [ignore_self()]).run(bot, make_payload(user=None)) is True


@pytest.mark.asyncio
async def test_ignore_bots_drops_bot_role():
    pipeline = Pipeline("receive", [ignore_bots()])
    assert await pipeline.run(FakeBot(), make_payload(role="bot")) is False
    assert await pipeline.run(FakeBot(), make_payload(role="agent")) is True


@pytest.mark.asyncio
async def test_builtin_steps_ignore_resource_events():
    pipeline = Pipeline("receive", [ignore_self(), ignore_bots()])
    payload = {"event": "conversation.update", "activity": {"id": "a1"}}
    assert await pipeline.run(FakeBot(), payload) is True
