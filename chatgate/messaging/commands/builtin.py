"""Commands shipped with chatgate."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..arguments import ArgumentDefinition
from ._command import Command

if TYPE_CHECKING:
    from ._context import CommandContext


def _usage(command: Command, prefix: str) -> str:
    parts = [f"{prefix}{command.id}"]
    for arg in command.arguments:
        label = f"{arg.key}..." if arg.infinite else arg.key
        parts.append(f"[{label}]" if arg.has_default else f"<{label}>")
    return " ".join(parts)


async def cmd_help(ctx: CommandContext) -> str:
    name = ctx.args["command"]
    if name:
        command = ctx.commands.get(name)
        if command is None:
            text = f"Unknown command: {name}"
        else:
            lines = [_usage(command, ctx.prefix_used)]
            if command.description:
                lines.append(f"  {command.description}")
            if command.aliases:
                lines.append(f"  Aliases: {', '.join(command.aliases)}")
            text = "\n".join(lines)
        await ctx.reply(text)
        return text

    lines = ["Commands", ""]
    for category, commands in ctx.commands.by_category().items():
        lines.append(category)
        for command in commands:
            summary = f" -- {command.description}" if command.description else ""
            lines.append(f"  {ctx.prefix_used}{command.id}{summary}")
    text = "\n".join(lines)
    await ctx.reply(text)
    return text


commands: list[Command] = [
    Command(
        id="help",
        aliases=("commands",),
        execute=cmd_help,
        arguments=[ArgumentDefinition("command", type="string", default=None)],
        category="General",
        description="List commands, or show usage for one command",
    ),
]
