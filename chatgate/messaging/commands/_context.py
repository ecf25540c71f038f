"""Per-invocation state handed to a command's ``execute``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..prompt import PromptOptions, PromptRegistry
    from ..types import Channel, InboundMessage, User, UserDirectory
    from ._command import Command, CommandRegistry


@dataclass
class CommandContext:
    """Everything a command needs about the message that invoked it.

    For ``"!ban @u spamming"`` with prefix ``"!"``: ``prefix_used`` is
    ``"!"``, ``alias_used`` is ``"ban"`` and ``content`` is
    ``"@u spamming"``.  ``args`` holds the resolved ``{key: value}``
    mapping, or the raw whitespace-split tokens for commands that declare
    no arguments.
    """

    message: InboundMessage
    command: Command
    commands: CommandRegistry
    content: str
    prefix_used: str
    alias_used: str
    prompts: PromptRegistry
    users: UserDirectory | None = None
    args: Any = None

    @property
    def author(self) -> User:
        return self.message.author

    @property
    def channel(self) -> Channel:
        return self.message.channel

    async def reply(self, content: Any) -> Any:
        return await self.message.channel.send(content)

    async def prompt(
        self,
        content: Any = None,
        options: PromptOptions | None = None,
        *,
        channel: Channel | None = None,
    ) -> Any:
        """Ask the author for more input; see :meth:`PromptRegistry.prompt`."""
        return await self.prompts.prompt(
            self.message.author, channel or self.message.channel, content, options,
        )

    def start_cooldown(self) -> None:
        if self.command.cooldown is not None:
            self.command.cooldown.start(self.message.author.id)
