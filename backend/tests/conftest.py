"""
Shared pytest fixtures for chipchat tests.
"""

import pytest

# Real platform token: _id 5b110daee70baa485b1b16ba, organization 5978bf4b0296404e6f9947e5
TOKEN = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
    "eyJfaWQiOiI1YjExMGRhZWU3MGJhYTQ4NWIxYjE2YmEiLCJvcmdhbml6YXRpb24iOiI1OTc4YmY0YjAyOTY0MDRlNmY5OTQ3ZTUiLCJzY29wZSI6InZpZXdlciBndWVzdCBhZ2VudCBib3QgYWRtaW4iLCJpYXQiOjE1NjQ1NjkzMDMsImV4cCI6MTU2NDY1NTcwM30."
    "2q6isPDL5uMwtnyThVGN8Hq9UMqhzAkf72mZdVrSFgc"
)
USER = "5b110daee70baa485b1b16ba"


def make_payload(
    text="hi",
    conversation="c1",
    organization="o1",
    event="message.create.contact.chat",
    conv_meta=None,
    **message,
):
    """A message-shaped webhook payload."""
    msg = {
        "conversation": conversation,
        "user": "u1",
        "role": "contact",
        "type": "chat",
        "text": text,
    }
    msg.update(message)
    return {
        "event": event,
        "data": {
            "conversation": {"id": conversation, "organization": organization, "meta": conv_meta or {}},
            "message": msg,
        },
    }


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep the developer's settings and env out of tests."""
    for var in ("TOKEN", "SECRET", "APIHOST", "WEBHOOK_PATH", "DEV_MODE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CHIPCHAT_DIR", str(tmp_path / "chipchat"))


@pytest.fixture
def tmp_config(tmp_path):
    """A Config instance using tmp_path as base_dir."""
    from chipchat.config import Config
    return Config(base_dir=tmp_path)


@pytest.fixture
def mock_client():
    from chipchat.client.base import MockClient
    return MockClient()


@pytest.fixture
def make_bot(tmp_config, mock_client):
    """Factory for bots wired to the MockClient."""
    from chipchat import ChipChat

    def _make(**options):
        options.setdefault("token", TOKEN)
        options.setdefault("secret", "s3cret")
        return ChipChat(tmp_config, client=options.pop("client", mock_client), **options)

    return _make


@pytest.fixture
def bot(make_bot):
    """A bot that does not filter its own or other bots' messages."""
    return make_bot(ignore_self=False, ignore_bots=False)


@pytest.fixture
def errors(bot):
    """Errors signalled by `bot`, in order."""
    seen = []
    bot.on("error", seen.append)
    return seen


class Recorder:
    """Collects (event, args) for every emission it is subscribed to."""

    def __init__(self):
        self.calls = []

    def handler(self, name):
        def record(*args):
            self.calls.append((name, args))
        return record

    def names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def recorder():
    return Recorder()
