"""Bot Framework ActivityHandler -- feeds channel messages to the Dispatcher.

The webhook must answer within the Bot Framework timeout, so each message
is dispatched on a background task and every reply (including prompt
triggers and notices) goes out as a proactive message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from botbuilder.core import ActivityHandler, BotFrameworkAdapter, TurnContext
from botbuilder.schema import Activity, ActivityTypes, ChannelAccount, ConversationReference

from ..config.settings import cfg
from ..services.otel import command_span
from .commands import Dispatcher, mention_forms
from .errors import DispatchError
from .formatting import render, split_message
from .types import ChannelKind, InboundMessage, Member, Server, User

logger = logging.getLogger(__name__)

_KIND_BY_CONVERSATION_TYPE = {
    "personal": ChannelKind.direct,
    "channel": ChannelKind.server_text,
    "groupchat": ChannelKind.server_text,
}


class ConversationChannel:
    """A conversation addressed through its stored reference."""

    def __init__(
        self,
        reference: ConversationReference,
        kind: ChannelKind,
        adapter: BotFrameworkAdapter | None,
    ) -> None:
        self.reference = reference
        self.kind = kind
        self.adapter = adapter

    @property
    def id(self) -> str:
        return self.reference.conversation.id if self.reference.conversation else ""

    async def send(self, content: Any) -> None:
        if self.adapter is None:
            raise DispatchError("No adapter available for proactive reply")
        bot_id = cfg.bot_app_id
        if not bot_id:
            raise DispatchError("No BOT_APP_ID configured")

        text = render(content)
        if not text:
            return

        for chunk in split_message(text):
            async def _send(turn_context: TurnContext, text: str = chunk) -> None:
                await turn_context.send_activity(
                    Activity(type=ActivityTypes.message, text=text, text_format="plain")
                )

            await self.adapter.continue_conversation(self.reference, _send, bot_id=bot_id)


class SeenUsers:
    """Users observed on inbound activities, for the ``user`` argument type."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    def remember(self, user: User) -> None:
        self._users[user.id] = user

    async def fetch_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def cached_users(self) -> Iterable[User]:
        return list(self._users.values())


def _channel_kind(activity: Activity) -> ChannelKind:
    conversation = activity.conversation
    conv_type = (getattr(conversation, "conversation_type", None) or "").lower()
    if conv_type in _KIND_BY_CONVERSATION_TYPE:
        return _KIND_BY_CONVERSATION_TYPE[conv_type]
    if conversation is not None and conversation.is_group:
        return ChannelKind.server_text
    return ChannelKind.direct if conversation is not None else ChannelKind.other


def _server_id(activity: Activity) -> str:
    data = activity.channel_data if isinstance(activity.channel_data, dict) else {}
    team = data.get("team") or {}
    if isinstance(team, dict) and team.get("id"):
        return str(team["id"])
    conversation = activity.conversation
    return (conversation.tenant_id or conversation.id) if conversation else ""


class Bot(ActivityHandler):
    def __init__(self, dispatcher: Dispatcher, users: SeenUsers | None = None) -> None:
        self.dispatcher = dispatcher
        self.adapter: BotFrameworkAdapter | None = None
        self.users = users or SeenUsers()
        if dispatcher.users is None:
            dispatcher.users = self.users
        self._tasks: set[asyncio.Task[None]] = set()

    async def on_message_activity(self, turn_context: TurnContext) -> None:
        activity = turn_context.activity
        with command_span(
            "bot.message",
            attributes={"bot.channel": (activity.channel_id or "unknown").lower()},
        ):
            message = self.to_inbound(activity)
            if message is None:
                return
            task = asyncio.create_task(self.dispatcher.handle(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def on_members_added_activity(
        self,
        members_added: list[ChannelAccount],
        turn_context: TurnContext,
    ) -> None:
        for member in members_added:
            if member.id != turn_context.activity.recipient.id:
                await turn_context.send_activity(
                    "Hello! Send a command to begin, for example: "
                    f"{cfg.command_prefixes[0]}help"
                )

    def to_inbound(self, activity: Activity) -> InboundMessage | None:
        """Translate a message activity into an :class:`InboundMessage`."""
        sender = activity.from_property
        if sender is None or not sender.id:
            return None

        recipient = activity.recipient
        if recipient is not None and recipient.id:
            mentions = list(mention_forms(recipient.id))
            if recipient.name:
                mentions.append(f"<at>{recipient.name}</at>")
            self.dispatcher.set_bot_mentions(mentions)

        author = User(
            id=sender.id,
            tag=sender.name or sender.id,
            display_name=sender.name or "",
            bot=(getattr(sender, "role", None) or "").lower() == "bot",
        )
        self.users.remember(author)

        kind = _channel_kind(activity)
        reference = TurnContext.get_conversation_reference(activity)
        channel = ConversationChannel(reference, kind, self.adapter)

        server = member = None
        if kind is ChannelKind.server_text:
            member = Member(author)
            server = Server(id=_server_id(activity), members=[member])

        return InboundMessage(
            id=activity.id or "",
            content=(activity.text or "").strip(),
            author=author,
            channel=channel,
            server=server,
            member=member,
            raw=activity,
        )

    async def drain(self) -> None:
        """Wait for in-flight dispatches (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
