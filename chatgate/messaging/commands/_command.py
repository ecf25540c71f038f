"""Command records and the alias index the dispatcher resolves against."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, Any

from ..arguments import ArgumentDefinition, ArgumentResolver, Splitter
from ..auth import OPEN, AuthRule
from ..cooldown import Cooldown
from ..types import ChannelKind

if TYPE_CHECKING:
    from ._context import CommandContext

logger = logging.getLogger(__name__)

Execute = Callable[["CommandContext"], Any]


class ChannelScope(enum.Enum):
    any = "any"
    direct = "direct"
    server_text = "server-text"

    def allows(self, kind: ChannelKind) -> bool:
        if self is ChannelScope.any:
            return True
        return kind.value == self.value


@dataclass
class Command:
    id: str
    execute: Execute
    aliases: tuple[str, ...] = ()
    channel_scope: ChannelScope = ChannelScope.any
    auth: AuthRule = OPEN
    cooldown: Cooldown | None = None
    arguments: list[ArgumentDefinition] = field(default_factory=list)
    splitter: Splitter | None = None
    category: str = "Other"
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise TypeError("Command.id must be a non-empty string")
        if not callable(self.execute):
            raise TypeError(f"Command {self.id!r}: execute must be callable")
        self.aliases = tuple(a.lower() for a in self.aliases if isinstance(a, str) and a)

    @property
    def names(self) -> tuple[str, ...]:
        return (self.id.lower(), *self.aliases)

    @cached_property
    def resolver(self) -> ArgumentResolver:
        return ArgumentResolver(self.arguments, self.splitter)


class CommandRegistry:
    """Case-insensitive index of commands by id and alias."""

    def __init__(self, commands: Iterable[Command] = ()) -> None:
        self._commands: dict[str, Command] = {}
        self._index: dict[str, Command] = {}
        for command in commands:
            self.register(command)

    def register(self, command: Command) -> None:
        """Add *command*; raise ``ValueError`` if any of its names is taken."""
        for name in command.names:
            if name in self._index:
                raise ValueError(
                    f"Command name collision: {name!r} is already registered "
                    f"to {self._index[name].id!r}"
                )
        for name in command.names:
            self._index[name] = command
        self._commands[command.id.lower()] = command

    def get(self, name: str) -> Command | None:
        return self._index.get(name.lower())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._index

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def by_category(self) -> dict[str, list[Command]]:
        grouped: dict[str, list[Command]] = {}
        for command in sorted(self._commands.values(), key=lambda c: c.id.lower()):
            grouped.setdefault(command.category, []).append(command)
        return dict(sorted(grouped.items()))


# ---------------------------------------------------------------------------
# Load-time adapter for foreign command records
# ---------------------------------------------------------------------------

_DEFAULT_FIELDS: dict[str, str] = {
    "id": "id",
    "execute": "execute",
    "aliases": "aliases",
    "channel_scope": "channel_scope",
    "auth": "auth",
    "cooldown": "cooldown",
    "arguments": "arguments",
    "category": "category",
    "description": "description",
}


def _lookup(record: Any, path: str) -> Any:
    current = record
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return None
            current = current[part]
        elif hasattr(current, part):
            current = getattr(current, part)
        else:
            return None
    return current


def command_from_record(
    record: Any, fields: Mapping[str, str] | None = None,
) -> Command:
    """Build a :class:`Command` from a mapping or object in another schema.

    *fields* maps :class:`Command` attribute names to dotted paths inside
    *record*, e.g. ``{"id": "info.name", "execute": "run"}``.  Paths are
    read once, here; the resulting command has the fixed schema.
    """
    paths = {**_DEFAULT_FIELDS, **(fields or {})}
    value = {name: _lookup(record, path) for name, path in paths.items()}

    if not isinstance(value["id"], str) or not callable(value["execute"]):
        raise TypeError(
            f"Command record needs a string at {paths['id']!r} "
            f"and a callable at {paths['execute']!r}"
        )

    aliases = value["aliases"] if isinstance(value["aliases"], (list, tuple)) else ()

    try:
        scope = ChannelScope(value["channel_scope"]) if value["channel_scope"] else ChannelScope.any
    except ValueError:
        logger.warning(
            "[commands.load] unknown channel scope %r for %s, using 'any'",
            value["channel_scope"], value["id"],
        )
        scope = ChannelScope.any

    auth = value["auth"]
    if isinstance(auth, Mapping):
        auth = AuthRule(
            users=tuple(auth["users"]) if auth.get("users") is not None else None,
            roles=tuple(auth["roles"]) if auth.get("roles") is not None else None,
            cant=auth.get("cant"),
        )
    elif not isinstance(auth, AuthRule):
        auth = OPEN

    cooldown = value["cooldown"] if isinstance(value["cooldown"], Cooldown) else None

    return Command(
        id=value["id"],
        execute=value["execute"],
        aliases=tuple(aliases),
        channel_scope=scope,
        auth=auth,
        cooldown=cooldown,
        arguments=list(value["arguments"] or []),
        category=value["category"] or "Other",
        description=value["description"] or "",
    )
