"""
ChipChat — webhook-driven bot for the ChatShipper conversational platform.

The bot composes three independent parts:
  - an EventRouter for hierarchical event dispatch
  - a ResourceClient for the platform REST API (outbound messages, preloads)
  - an optional server binding (see chipchat.server) that feeds webhooks to ingest()

Inbound flow for one webhook:

    ingest(payload, signature)
      -> signature + shape checks            (IntegrityError / MalformedPayloadError)
      -> conversation cache update, optional organization preload
      -> receive middleware                  (ignore-self, ignore-bots, user steps)
      -> "activity", then for messages: text triggers, reply listeners and,
         unless one of them claimed the message, "message", the typed
         event, "notify" and "<type>.<role>"
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from pydantic import BaseModel, ValidationError

from ..config import Config
from .actions import ActionsContext, ConversationView, build_actions
from .auth import decode_token, verify_signature
from .errors import (
    ChipChatError,
    IntegrityError,
    MalformedPayloadError,
    MissingConversationError,
    PipelineError,
    UpstreamError,
)
from .events import EventRouter
from .middleware import Pipeline, ignore_bots, ignore_self
from .models import Conversation, Id, Message, MessageEvent, Organization
from .replies import CallbackRegistry, ReplyCorrelator
from .store import ConversationStore, OrganizationStore
from .triggers import TextTriggerRegistry, qualifies

log = logging.getLogger("chipchat.bot")

Handler = Callable[..., Any]


class ChipChat:
    """A bot instance: one inbound channel, one event bus."""

    @classmethod
    def mixin(cls, methods: Mapping[str, Handler]) -> None:
        """Attach functions as bot methods.

            ChipChat.mixin({"greet": lambda bot, ctx: ctx.say("Hello")})
            bot.on("message", lambda m, c: bot.greet(c))
        """
        for name, method in methods.items():
            setattr(cls, name, method)

    def __init__(
        self,
        config: Config | None = None,
        *,
        client: Any = None,
        conversations: ConversationStore | None = None,
        organizations: OrganizationStore | None = None,
        **options: Any,
    ) -> None:
        self.config = config or Config()

        def opt(name: str) -> Any:
            # explicit keyword options win over config values
            return options[name] if options.get(name) is not None else getattr(self.config, name)

        self.token: str | None = opt("token")
        self.secret: str | None = opt("secret")
        self.host: str = opt("host")
        webhook = opt("webhook")
        self.webhook: str = webhook if webhook.startswith("/") else f"/{webhook}"
        self.ignore_self: bool = bool(opt("ignore_self"))
        self.ignore_bots: bool = bool(opt("ignore_bots"))
        self.only_first_match: bool = bool(opt("only_first_match"))
        self.preload_organizations: bool = bool(opt("preload_organizations"))

        self.auth = decode_token(self.token)

        if client is None:
            from ..client.rest import RestClient
            client = RestClient(self.host, self.token)
        self.client = client

        self.router = EventRouter()
        self.conversations = conversations if conversations is not None else ConversationStore()
        self.organizations = organizations if organizations is not None else OrganizationStore()
        self.callbacks = CallbackRegistry()
        self.replies = ReplyCorrelator(self.callbacks)
        self.triggers = TextTriggerRegistry()

        self.middleware = {"receive": Pipeline("receive"), "send": Pipeline("send")}
        if self.ignore_self:
            self.use(ignore_self())
        if self.ignore_bots:
            self.use(ignore_bots())
        middleware = options.get("middleware") or {}
        if middleware.get("receive"):
            self.middleware["receive"].use(middleware["receive"])
        if middleware.get("send"):
            self.middleware["send"].use(middleware["send"])

        self.router.on("error", self._log_error)
        self.router.on("conversation.update", self._on_conversation_update)

    def __repr__(self) -> str:
        user = self.auth.user if self.auth else None
        return f"ChipChat(user={user!r}, host={self.host!r})"

    # ── Registration ──────────────────────────────────────────────────────

    def use(self, *steps: Any) -> "ChipChat":
        """Append receive middleware steps."""
        self.middleware["receive"].use(*steps)
        return self

    def module(self, factory: Callable[..., Any], **opts: Any) -> Any:
        """Run a module factory, factory(bot, opts), and return its result."""
        return factory(self, opts)

    def register_callback(self, name: str, callback: Handler) -> None:
        """Make `callback` addressable by name, e.g. as an ask() handler."""
        self.callbacks.register(name, callback)

    def on(
        self,
        events: str | Iterable[str],
        conditionals: Mapping[str, Any] | Handler | None = None,
        handler: Handler | None = None,
    ) -> "ChipChat":
        """Subscribe to webhook events, optionally gated by conditionals.

            bot.on("message.create.*.chat", {"@organization": "o1"}, handler)
        """
        self.router.on(events, conditionals, handler)
        return self

    def once(
        self,
        events: str | Iterable[str],
        conditionals: Mapping[str, Any] | Handler | None = None,
        handler: Handler | None = None,
    ) -> "ChipChat":
        self.router.once(events, conditionals, handler)
        return self

    def off(self, event: str, handler: Handler) -> bool:
        return self.router.off(event, handler)

    async def emit(self, event: str, *args: Any) -> bool:
        return await self.router.emit(event, *args)

    async def signal(self, error: ChipChatError) -> None:
        """Report an error on the bot's error channel."""
        await self.router.emit("error", error)

    def on_text(
        self,
        patterns: Any,
        conditionals: Mapping[str, Any] | Handler | None = None,
        handler: Handler | None = None,
    ) -> "ChipChat":
        """Register text triggers: str patterns match whole text, case-insensitively;
        compiled regexes are searched."""
        if handler is None:
            handler, conditionals = conditionals, None
        self.triggers.add(patterns, conditionals, handler)
        return self

    def remove_text_listener(self, pattern: Any):
        return self.triggers.remove(pattern)

    def on_reply(self, conversation_id: Id, message_id: Id | None, handler: str | Handler) -> int:
        """Wait for the next message in a conversation. Returns the listener id."""
        return self.replies.add(conversation_id, message_id, handler)

    def remove_reply_listener(self, listener_id: int | None):
        if listener_id is None:
            return None
        return self.replies.remove(listener_id)

    @property
    def asked_key(self) -> str:
        """Meta key marking a conversation as awaiting this bot's question."""
        user = self.auth.user if self.auth and self.auth.user else ""
        return f"_asked{user}"

    # ── Ingestion ─────────────────────────────────────────────────────────

    async def ingest(self, payload: Any, signature: str | None = None) -> None:
        """Ingest one webhook payload.

        Errors are emitted on the "error" event, never raised. Exceptions
        raised by event handlers do propagate.
        """
        if signature and not verify_signature(payload, signature, self.secret):
            await self.signal(IntegrityError("Message integrity check failed"))
            return
        if not isinstance(payload, dict) or not payload.get("event"):
            await self.signal(MalformedPayloadError("Invalid payload, missing event"))
            return

        event = str(payload["event"])
        log.debug("ingest %s event, keys: %s", event, ",".join(payload))

        if event.startswith("message"):
            try:
                parsed = MessageEvent.model_validate(payload)
            except ValidationError as e:
                await self.signal(MalformedPayloadError("Invalid payload, missing conversation or message", cause=e))
                return
            conversation = parsed.data.conversation
            self.conversations.save(conversation)

            organization_id = _organization_id(conversation)
            if (
                self.preload_organizations
                and organization_id is not None
                and organization_id not in self.organizations
            ):
                try:
                    org = await self.client.organizations.get(organization_id, {"populate": "categories.forms"})
                    self.organizations.save(Organization.model_validate(org))
                except Exception as e:
                    log.debug("error loading organization %s: %s", organization_id, e)
                    await self.signal(UpstreamError(f"Could not load organization {organization_id}: {e}", cause=e))
                    return
                log.debug("cached organization %s", organization_id)

            await self._handle_event(event, payload)

        elif payload.get("activity"):
            await self._handle_event(event, payload)

        else:
            log.info("unknown event %s, payload keys: %s", event, ",".join(payload))

    async def _handle_event(self, event: str, payload: dict[str, Any]) -> None:
        try:
            proceed = await self.middleware["receive"].run(self, payload)
        except PipelineError as e:
            await self.signal(e)
            return
        if not proceed:
            return

        data = payload.get("data") or {}
        if event.startswith("message") and data.get("message"):
            message = _parse_message(data)
            ctx = await self.actions(message.conversation)
            log.debug("emit activity")
            await self.emit("activity", message, ctx)
            await self._handle_message(event, message, ctx)
        else:
            await self.emit("activity", payload.get("activity"))
            log.debug("emit %s", event)
            await self.emit(event, payload)

    async def _handle_message(self, event: str, message: Message, ctx: ConversationView) -> None:
        claimed = False
        if qualifies(event, message):
            claimed = await self.triggers.dispatch(message, ctx, self.only_first_match)
            if isinstance(ctx, ActionsContext) and ctx.get(self.asked_key):
                log.debug("question asked, %d reply listeners", len(self.replies))
                if await self.replies.resolve(message):
                    claimed = True

        if claimed:
            log.debug("message claimed, skipping %s", event)
            return

        log.debug("emit message + %s", event)
        await self.emit("message", message, ctx)
        await self.emit(event, message, ctx)

        user = self.auth.user if self.auth else None
        meta = message.meta or {}
        if message.type == "command" and message.text == "/assign" and user and user in (meta.get("users") or []):
            log.debug("emit notify /assign")
            await self.emit("notify", message, ctx)
        if message.type == "command" and (message.text or "").startswith(">"):
            log.debug("emit notify botcmd %s", message.text)
            await self.emit("notify", message, ctx)
        if message.type == "mention" and user and meta.get("targetUser") == user:
            log.debug("emit notify mention")
            await self.emit("notify", message, ctx)
        if message.role:
            await self.emit(f"{event}.{message.role}", message, ctx)

    # ── Conversations and outbound ────────────────────────────────────────

    async def actions(self, conversation_id: Id | None) -> ConversationView:
        """The actions context for a cached conversation.

        Unknown ids emit MissingConversationError and yield an empty view.
        """
        try:
            return build_actions(self, conversation_id)
        except MissingConversationError as e:
            await self.signal(e)
            return ConversationView()

    async def conversation(self, conversation: Id | dict[str, Any] | Conversation | None) -> ConversationView:
        """Cache a conversation (object, or id fetched from the API) and return its context."""
        if not conversation:
            error = MissingConversationError(conversation)
            await self.signal(error)
            raise error
        if isinstance(conversation, (str, int)):
            try:
                conversation = await self.client.conversations.get(conversation)
            except Exception as e:
                error = UpstreamError(f"Could not load conversation {conversation}: {e}", cause=e)
                await self.signal(error)
                raise error from e
        if not isinstance(conversation, Conversation):
            conversation = Conversation.model_validate(conversation)
        self.conversations.save(conversation)
        return await self.actions(conversation.id)

    async def send(self, conversation_id: Id, content: str | dict[str, Any] | BaseModel) -> Any:
        """Post a message to a conversation through the send middleware.

        Bare strings are sent as chat messages. Returns the created message,
        or None if send middleware stopped or failed.
        """
        if isinstance(content, str):
            message: dict[str, Any] = {"text": content, "type": "chat"}
        elif isinstance(content, BaseModel):
            message = content.model_dump(exclude_none=True)
        else:
            message = dict(content)
        try:
            proceed = await self.middleware["send"].run(self, message)
        except PipelineError as e:
            await self.signal(e)
            return None
        if not proceed:
            return None
        return await self.client.send(conversation_id, message)

    def start(self, host: str | None = None, port: int | None = None) -> None:
        """Serve the webhook endpoint (blocking)."""
        from ..server import run
        run(self, host=host or self.config.server_host, port=port or self.config.server_port)

    async def close(self) -> None:
        await self.client.close()

    # ── Built-in listeners ────────────────────────────────────────────────

    def _log_error(self, error: Any) -> None:
        log.warning("error %s", getattr(error, "message", error))

    def _on_conversation_update(self, payload: dict[str, Any]) -> None:
        conversation = ((payload or {}).get("data") or {}).get("conversation")
        if not conversation or "id" not in conversation:
            return
        self.conversations.replace_if_cached(Conversation.model_validate(conversation))


def _organization_id(conversation: Conversation) -> Any:
    org = conversation.organization
    if isinstance(org, dict):
        return org.get("id")
    return org


def _parse_message(data: dict[str, Any]) -> Message:
    message = Message.model_validate(data["message"])
    if message.conversation is None:
        message.conversation = (data.get("conversation") or {}).get("id")
    return message
