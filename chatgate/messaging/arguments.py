"""Typed argument resolution for commands.

A command declares an ordered list of :class:`ArgumentDefinition`.  For
each one the resolver takes the next token (or the rest of the message
for an ``infinite`` argument), tries the declared types left to right and
keeps the first value that both parses and passes the range filter.  When
nothing matches, the definition's default is used, or the user is asked
for the value through a prompt.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Union

from ..util.async_helpers import maybe_await
from .errors import DefinitionError
from .parsers import TYPES, UNBOUNDED, ArgumentType, Range, literal_type
from .prompt import Predicate, PromptOptions

if TYPE_CHECKING:
    from .commands._context import CommandContext
    from .types import InboundMessage

logger = logging.getLogger(__name__)

TypeEntry = Union[str, ArgumentType, Sequence[str]]
Splitter = Callable[[str], list[str]]

_TOKEN = re.compile(r"""[^\s"']+|"([^"]*)"|'([^']*)'""")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def split_arguments(text: str) -> list[str]:
    """Split on whitespace, keeping ``"quoted text"`` together (quotes removed)."""
    tokens: list[str] = []
    for match in _TOKEN.finditer(text):
        double, single = match.group(1), match.group(2)
        if double is not None:
            tokens.append(double)
        elif single is not None:
            tokens.append(single)
        else:
            tokens.append(match.group(0))
    return tokens


@dataclass
class ArgumentDefinition:
    """One argument slot of a command.

    ``type`` is a type name, an :class:`ArgumentType`, or a list of
    alternatives tried left to right.  Inside that list a nested list or
    tuple of strings is a literal set, e.g. ``["integer", ["all", "none"]]``.
    """

    key: str
    prompt: Any = None
    type: TypeEntry | list[TypeEntry] = "string"
    infinite: bool = False
    default: Any = MISSING
    range: Range = UNBOUNDED
    prompt_options: PromptOptions | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def type_entries(self) -> list[Any]:
        if isinstance(self.type, (str, ArgumentType)):
            return [self.type]
        if isinstance(self.type, (list, tuple)):
            return list(self.type)
        return [self.type]


@dataclass
class _Slot:
    definition: ArgumentDefinition
    types: list[ArgumentType] = field(default_factory=list)


class ArgumentResolver:
    """Resolves a command's argument definitions against message text."""

    def __init__(
        self,
        definitions: Sequence[ArgumentDefinition],
        splitter: Splitter | None = None,
    ) -> None:
        keys = [d.key for d in definitions]
        duplicates = {k for k in keys if keys.count(k) > 1}
        if duplicates:
            raise ValueError(f"Duplicate argument keys: {', '.join(sorted(duplicates))}")
        self.definitions = list(definitions)
        self._split = splitter or split_arguments

    async def resolve_all(self, ctx: CommandContext) -> dict[str, Any]:
        """Return ``{key: value}`` for every definition, prompting as needed.

        Raises :class:`DefinitionError` for a malformed definition and lets
        :class:`~chatgate.messaging.errors.PromptEndedError` propagate when
        the user abandons a prompt.
        """
        tokens = self._split(ctx.content) or []
        resolved: dict[str, Any] = {}
        pos = 0

        for position, definition in enumerate(self.definitions, start=1):
            slot = _Slot(definition, self._types_for(ctx.command.id, position, definition))

            if definition.infinite:
                candidate = self._rest(ctx.content, tokens, pos)
            else:
                candidate = tokens[pos] if pos < len(tokens) else ""

            match = await self._first_match(ctx, slot, candidate) if candidate else None

            if match is not None:
                resolved[definition.key] = match[1]
                pos += 1
            elif definition.has_default:
                # Fallback slots leave the token for the next definition.
                resolved[definition.key] = definition.default
            else:
                resolved[definition.key] = await self._ask(ctx, position, slot)

            if definition.infinite:
                break

        return resolved

    def _rest(self, content: str, tokens: list[str], pos: int) -> str:
        """The raw text from token *pos* onward, spacing and quotes intact."""
        if pos >= len(tokens):
            return ""
        if self._split is not split_arguments:
            return " ".join(tokens[pos:])
        for index, match in enumerate(_TOKEN.finditer(content)):
            if index == pos:
                return content[match.start():].strip()
        return ""

    def _types_for(
        self, command_id: str, position: int, definition: ArgumentDefinition,
    ) -> list[ArgumentType]:
        entries = definition.type_entries()
        if not entries:
            raise DefinitionError(command_id, position, "no type declared")
        types: list[ArgumentType] = []
        for entry in entries:
            if isinstance(entry, ArgumentType):
                types.append(entry)
            elif isinstance(entry, str):
                if entry not in TYPES:
                    raise DefinitionError(command_id, position, f"unknown type {entry!r}")
                types.append(TYPES[entry])
            elif isinstance(entry, (list, tuple)) and entry and all(isinstance(v, str) for v in entry):
                types.append(literal_type(entry))
            else:
                raise DefinitionError(command_id, position, f"invalid type entry {entry!r}")
        return types

    async def _first_match(
        self, ctx: CommandContext, slot: _Slot, candidate: str,
    ) -> tuple[ArgumentType, Any] | None:
        rng = slot.definition.range
        for arg_type in slot.types:
            parsed = await maybe_await(arg_type.parse(candidate, ctx))
            if parsed is None or parsed == "":
                continue
            if arg_type.filter(parsed, rng):
                return arg_type, parsed
        return None

    async def _ask(self, ctx: CommandContext, position: int, slot: _Slot) -> Any:
        definition = slot.definition
        if definition.prompt is None:
            raise DefinitionError(
                ctx.command.id, position, "argument has neither a default nor a prompt",
            )

        matched: dict[str, Any] = {}

        async def check(message: InboundMessage, _prompt: Any) -> bool:
            found = await self._first_match(ctx, slot, message.content)
            if found is None:
                return False
            matched[message.id] = found[1]
            return True

        base = definition.prompt_options or PromptOptions()
        # One reply per argument; match_until would let the prompt end without one.
        options = replace(
            base, filter=Predicate(check), messages=1, match_until=None, add_last_match=False,
        )

        logger.info(
            "[args.prompt] command=%s key=%s user=%s",
            ctx.command.id, definition.key, ctx.message.author.id,
        )
        reply = await ctx.prompt(definition.prompt, options)
        return matched[reply.id]
