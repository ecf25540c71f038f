"""Argument types -- turn one raw token into a typed, range-checked value.

Each :class:`ArgumentType` pairs a ``parse`` step, which returns ``None``
when the token is not of that type, with a ``filter`` step that checks the
parsed value against the argument's :class:`Range`.  Reference types
(``member``, ``user``) read the invocation context and may suspend.
"""

from __future__ import annotations

import math
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Union

from .types import Member, User

Parse = Callable[[str, Any], Union[Any, Awaitable[Any]]]
Check = Callable[[Any, "Range"], bool]


@dataclass(frozen=True)
class Range:
    """Bounds applied to a parsed value.

    ``min``/``max`` are inclusive and bound string length for ``string``,
    the value itself for ``integer`` and ``duration`` (milliseconds).
    ``ids``/``roles`` restrict the reference types; ``None`` means no
    restriction.
    """

    min: float = -math.inf
    max: float = math.inf
    ids: tuple[str, ...] | None = None
    roles: tuple[str, ...] | None = None

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


UNBOUNDED = Range()


@dataclass(frozen=True)
class ArgumentType:
    name: str
    parse: Parse
    filter: Check


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

DURATION_UNITS: dict[str, int] = {
    "ms": 1,
    "milliseconds": 1,
    "s": 1_000,
    "sec": 1_000,
    "secs": 1_000,
    "second": 1_000,
    "seconds": 1_000,
    "m": 60_000,
    "min": 60_000,
    "mins": 60_000,
    "minute": 60_000,
    "minutes": 60_000,
    "h": 3_600_000,
    "hour": 3_600_000,
    "hours": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
    "days": 86_400_000,
    "w": 604_800_000,
    "week": 604_800_000,
    "weeks": 604_800_000,
    "mon": 2_592_000_000,
    "month": 2_592_000_000,
    "months": 2_592_000_000,
    "y": 31_536_000_000,
    "year": 31_536_000_000,
    "years": 31_536_000_000,
}

# Longest unit first so "5min" is five minutes and "2mon" two months.
_UNIT_ALTERNATION = "|".join(sorted(DURATION_UNITS, key=len, reverse=True))
_DURATION_PART = re.compile(rf"(\d+)\s*({_UNIT_ALTERNATION})", re.IGNORECASE)
_DURATION_FULL = re.compile(rf"(?:\s*\d+\s*(?:{_UNIT_ALTERNATION}))+\s*", re.IGNORECASE)


def parse_duration(text: str) -> int | None:
    """Parse ``"1h30m"``-style text into milliseconds; ``None`` if invalid or zero."""
    if not text or not _DURATION_FULL.fullmatch(text):
        return None
    total = sum(
        int(amount) * DURATION_UNITS[unit.lower()]
        for amount, unit in _DURATION_PART.findall(text)
    )
    return total or None


# ---------------------------------------------------------------------------
# Built-in types
# ---------------------------------------------------------------------------

_INTEGER = re.compile(r"[+-]?\d+")
_MENTION = re.compile(r"<@!?([^<>\s]+)>")
_NON_DIGITS = re.compile(r"\D+")


def _id_candidates(token: str) -> list[str]:
    """Ids *token* may name: a mention's id or the token itself, then its digits."""
    token = token.strip()
    mention = _MENTION.fullmatch(token)
    candidates = [mention.group(1) if mention else token]
    digits = _NON_DIGITS.sub("", token)
    if digits:
        candidates.append(digits)
    return [c for i, c in enumerate(candidates) if c and c not in candidates[:i]]


def _parse_string(token: str, _ctx: Any) -> str | None:
    return token or None


def _filter_string(value: str, rng: Range) -> bool:
    return rng.contains(len(value))


def _parse_integer(token: str, _ctx: Any) -> int | None:
    token = token.strip()
    if not _INTEGER.fullmatch(token):
        return None
    try:
        return int(token)
    except ValueError:
        # Past the interpreter's digit limit for str -> int.
        return None


def _parse_duration(token: str, _ctx: Any) -> int | None:
    return parse_duration(token)


def _filter_number(value: float, rng: Range) -> bool:
    return rng.contains(value)


def _parse_member(token: str, ctx: Any) -> Member | None:
    """Resolve a server member by id or mention, then tag, then display name.

    Ties on tag or display name resolve to the first member in the server's
    iteration order.
    """
    server = ctx.message.server
    if server is None:
        return None
    lowered = token.lower()
    found = next(
        (m for m in map(server.get_member, _id_candidates(token)) if m is not None), None,
    )
    if found is None:
        found = next((m for m in server.members if m.user.tag.lower() == lowered), None)
    if found is None:
        found = next((m for m in server.members if m.display_name == token), None)
    return found


def _filter_member(member: Member, rng: Range) -> bool:
    if rng.ids is None and rng.roles is None:
        return True
    if rng.ids is not None and member.id in rng.ids:
        return True
    if rng.roles is not None:
        allowed = set(rng.roles)
        return any(r.id in allowed or r.name.lower() in allowed for r in member.roles)
    return False


async def _parse_user(token: str, ctx: Any) -> User | None:
    directory = ctx.users
    if directory is None:
        return None
    for user_id in _id_candidates(token):
        fetched = await directory.fetch_user(user_id)
        if fetched is not None:
            return fetched
    lowered = token.lower()
    return next((u for u in directory.cached_users() if u.tag.lower() == lowered), None)


def _filter_user(user: User, rng: Range) -> bool:
    return rng.ids is None or user.id in rng.ids


def literal_type(values: Sequence[str]) -> ArgumentType:
    """Build a type accepting any of *values*, case-insensitively.

    The parsed value is the entry as written in *values*.
    """
    canonical = {v.lower(): v for v in values}

    def parse(token: str, _ctx: Any) -> str | None:
        return canonical.get(token.lower())

    return ArgumentType(
        name="literal[" + "|".join(values) + "]",
        parse=parse,
        filter=lambda _value, _rng: True,
    )


TYPES: dict[str, ArgumentType] = {
    t.name: t
    for t in (
        ArgumentType("string", _parse_string, _filter_string),
        ArgumentType("integer", _parse_integer, _filter_number),
        ArgumentType("duration", _parse_duration, _filter_number),
        ArgumentType("member", _parse_member, _filter_member),
        ArgumentType("user", _parse_user, _filter_user),
    )
}


def register_type(arg_type: ArgumentType) -> None:
    """Add or replace a named type in the shared table."""
    TYPES[arg_type.name] = arg_type
