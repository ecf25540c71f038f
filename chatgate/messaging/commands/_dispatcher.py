"""Inbound message dispatcher.

Every message from the transport goes through :meth:`Dispatcher.handle`:

    message ──► owned by a prompt? ──yes──► Prompt.add_input
                      │ no
                      ▼
               prefix ─► alias ─► gates ─► arguments ─► execute ─► command_used

Gates run in order: server allow-list, authorization, channel scope,
cooldown.  Nothing raised by a command reaches the transport; errors go to
``on_error`` instead.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, Union

from ...config.settings import cfg
from ...services.otel import command_span, record_event, set_span_attribute
from ...util.async_helpers import maybe_await
from ..auth import Authorizer, authorize, can_use
from ..errors import AuthorizationDenied, PromptEndedError
from ..prompt import PromptRegistry
from ..types import InboundMessage, UserDirectory
from ._command import Command, CommandRegistry
from ._context import CommandContext

logger = logging.getLogger(__name__)

Prefixes = Union[str, Sequence[str]]
PrefixSource = Union[Prefixes, Callable[[InboundMessage], Union[Prefixes, Awaitable[Prefixes]]]]
ErrorHandler = Callable[[InboundMessage, Command, BaseException], Any]
EmitFn = Callable[[str, dict[str, Any]], None]


def mention_forms(bot_id: str) -> tuple[str, ...]:
    """The text forms of a mention of *bot_id* accepted as a prefix."""
    return (f"<@{bot_id}>", f"<@!{bot_id}>")


def log_command_error(message: InboundMessage, command: Command, error: BaseException) -> None:
    logger.error(
        "[dispatch.error] command=%s user=%s channel=%s: %s",
        command.id, message.author.id, message.channel.id, error,
        exc_info=(type(error), error, error.__traceback__),
    )


class Dispatcher:
    """Turns inbound chat messages into command invocations.

    The :class:`PromptRegistry` is shared with every :class:`CommandContext`
    built here, so prompts opened during argument resolution or by a
    command itself are routed back through :meth:`handle`.
    """

    def __init__(
        self,
        commands: CommandRegistry | Iterable[Command],
        *,
        prompts: PromptRegistry | None = None,
        prefix: PrefixSource | None = None,
        bot_mentions: Iterable[str] = (),
        mention_prefix: bool | None = None,
        allow_bots: bool | None = None,
        restricted_servers: Iterable[str] | None = None,
        authorizer: Authorizer = can_use,
        users: UserDirectory | None = None,
        on_error: ErrorHandler | None = None,
        emit: EmitFn | None = None,
    ) -> None:
        self.commands = commands if isinstance(commands, CommandRegistry) else CommandRegistry(commands)
        self.prompts = prompts if prompts is not None else PromptRegistry()
        self.users = users

        self._prefix: PrefixSource = cfg.command_prefixes if prefix is None else prefix
        self._bot_mentions = tuple(bot_mentions)
        self._mention_prefix = cfg.mention_prefix if mention_prefix is None else mention_prefix
        self._allow_bots = cfg.allow_bots if allow_bots is None else allow_bots
        self._restricted_servers = frozenset(
            cfg.restricted_servers if restricted_servers is None else restricted_servers
        )
        self._authorizer = authorizer
        self._on_error: ErrorHandler = on_error or log_command_error
        self._listeners: list[EmitFn] = [emit] if emit else []

    def subscribe(self, listener: EmitFn) -> None:
        """Register a listener for ``command_used`` events."""
        self._listeners.append(listener)

    def set_bot_mentions(self, mentions: Iterable[str]) -> None:
        self._bot_mentions = tuple(mentions)

    async def handle(self, message: InboundMessage) -> None:
        with command_span(
            "dispatch.message",
            attributes={"chat.channel": message.channel.id, "chat.user": message.author.id},
        ):
            try:
                await self._handle(message)
            except Exception:
                logger.exception(
                    "[dispatch] unhandled error for message=%s channel=%s",
                    message.id, message.channel.id,
                )

    async def _handle(self, message: InboundMessage) -> None:
        if message.author.bot and not self._allow_bots:
            return

        if await self._route_to_prompts(message):
            return

        prefixes = await self._resolve_prefixes(message)
        if not prefixes:
            return

        prefix_used = self._match_prefix(message.content, prefixes)
        if prefix_used is None:
            return

        cut = message.content[len(prefix_used):].strip()
        tokens = cut.split()
        if not tokens:
            return

        alias_used = tokens[0].lower()
        command = self.commands.get(alias_used)
        if command is None:
            return

        if not await self._passes_gates(message, command):
            return

        ctx = CommandContext(
            message=message,
            command=command,
            commands=self.commands,
            content=cut[len(tokens[0]):].strip(),
            prefix_used=prefix_used,
            alias_used=alias_used,
            prompts=self.prompts,
            users=self.users,
        )
        await self._invoke(ctx, tokens[1:])

    # -- routing -------------------------------------------------------------

    async def _route_to_prompts(self, message: InboundMessage) -> bool:
        """Feed *message* to the pair's live prompts; ``True`` if one owns it."""
        owned = self.prompts.find(*message.pair)
        if not owned:
            return False
        for prompt in owned:
            try:
                await prompt.add_input(message)
            except Exception:
                logger.exception(
                    "[dispatch.prompt] add_input failed: user=%s channel=%s",
                    message.author.id, message.channel.id,
                )
        return any(not p.options.coexist for p in owned)

    async def _resolve_prefixes(self, message: InboundMessage) -> list[str]:
        source = self._prefix
        raw = await maybe_await(source(message)) if callable(source) else source
        if raw is None:
            return []
        items = [raw] if isinstance(raw, str) else list(raw)
        return [p for p in items if isinstance(p, str) and p]

    def _match_prefix(self, content: str, prefixes: list[str]) -> str | None:
        """Return the longest prefix *content* starts with, as written in *content*.

        Configured prefixes are case-sensitive; the bot's own mention is not.
        """
        matches = [p for p in prefixes if content.startswith(p)]
        if self._mention_prefix:
            lowered = content.lower()
            matches.extend(
                content[:len(m)] for m in self._bot_mentions if m and lowered.startswith(m.lower())
            )
        if not matches:
            return None
        return max(matches, key=len)

    # -- gates ---------------------------------------------------------------

    async def _passes_gates(self, message: InboundMessage, command: Command) -> bool:
        if (
            message.server is not None
            and self._restricted_servers
            and message.server.id not in self._restricted_servers
        ):
            return False

        try:
            authorize(command.auth, message, self._authorizer)
        except AuthorizationDenied as denied:
            logger.info(
                "[dispatch.gate] denied command=%s user=%s", command.id, message.author.id,
            )
            await self._respond_cant(message, denied)
            return False

        if not command.channel_scope.allows(message.channel.kind):
            return False

        cooldown = command.cooldown
        if cooldown is not None and cooldown.on_cooldown(message.author.id):
            logger.info(
                "[dispatch.gate] cooldown active command=%s user=%s",
                command.id, message.author.id,
            )
            await cooldown.handle(message)
            return False

        return True

    async def _respond_cant(self, message: InboundMessage, denied: AuthorizationDenied) -> None:
        cant = denied.rule.cant
        if cant is None:
            return
        if isinstance(cant, str):
            await message.channel.send(cant)
        else:
            await maybe_await(cant(message))

    # -- invocation ----------------------------------------------------------

    async def _invoke(self, ctx: CommandContext, raw_args: list[str]) -> None:
        command = ctx.command
        set_span_attribute("chat.command", command.id)
        try:
            if command.arguments:
                ctx.args = await command.resolver.resolve_all(ctx)
            else:
                ctx.args = raw_args
            result = await maybe_await(command.execute(ctx))
        except PromptEndedError as exc:
            logger.info(
                "[dispatch.invoke] command=%s abandoned: %s", command.id, exc.reason.value,
            )
            return
        except Exception as exc:
            await self._report(ctx.message, command, exc)
            return

        logger.info(
            "[dispatch.invoke] command=%s alias=%s user=%s completed",
            command.id, ctx.alias_used, ctx.author.id,
        )
        record_event("command_used", {"command": command.id, "user": ctx.author.id})
        for listener in list(self._listeners):
            try:
                listener("command_used", {"context": ctx, "result": result})
            except Exception:
                logger.exception("[dispatch.emit] listener failed for command=%s", command.id)

    async def _report(self, message: InboundMessage, command: Command, error: BaseException) -> None:
        try:
            await maybe_await(self._on_error(message, command, error))
        except Exception:
            logger.exception("[dispatch.error] on_error handler failed for command=%s", command.id)
