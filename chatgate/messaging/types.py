"""Platform-neutral chat primitives consumed by the dispatcher.

Transports (Bot Framework, the local console, tests) translate their own
payloads into these shapes.  Only the fields the dispatch pipeline reads
are modelled.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class ChannelKind(enum.Enum):
    direct = "direct"
    server_text = "server-text"
    other = "other"


@dataclass(frozen=True)
class User:
    id: str
    tag: str = ""
    display_name: str = ""
    bot: bool = False

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(frozen=True)
class Role:
    id: str
    name: str = ""


@dataclass
class Member:
    """A :class:`User` as seen inside one server, with its roles."""

    user: User
    roles: list[Role] = field(default_factory=list)
    nickname: str = ""

    @property
    def id(self) -> str:
        return self.user.id

    @property
    def display_name(self) -> str:
        return self.nickname or self.user.display_name or self.user.tag

    def has_role(self, role_ids: Iterable[str]) -> bool:
        wanted = set(role_ids)
        return any(r.id in wanted for r in self.roles)


@dataclass
class Server:
    id: str
    name: str = ""
    members: list[Member] = field(default_factory=list)

    def get_member(self, member_id: str) -> Member | None:
        if not member_id:
            return None
        for member in self.members:
            if member.id == member_id:
                return member
        return None


@runtime_checkable
class Channel(Protocol):
    """Outbound side of a conversation."""

    @property
    def id(self) -> str: ...

    @property
    def kind(self) -> ChannelKind: ...

    async def send(self, content: Any) -> Any: ...


class UserDirectory(Protocol):
    """Lookup of users outside the current server (``user`` argument type)."""

    async def fetch_user(self, user_id: str) -> User | None: ...

    def cached_users(self) -> Iterable[User]: ...


@dataclass
class InboundMessage:
    id: str
    content: str
    author: User
    channel: Channel
    server: Server | None = None
    member: Member | None = None
    raw: Any = None

    @property
    def pair(self) -> tuple[str, str]:
        """The ``(participant, channel)`` key prompts are tracked under."""
        return (self.author.id, self.channel.id)
