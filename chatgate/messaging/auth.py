"""Command authorization rules."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, Union

from .errors import AuthorizationDenied
from .types import InboundMessage

Cant = Union[str, Callable[[InboundMessage], Any]]


@dataclass(frozen=True)
class AuthRule:
    """Who may run a command.

    With neither ``users`` nor ``roles`` set, everyone may.  Otherwise the
    author must be listed in ``users`` or hold one of ``roles`` in the
    server the message was sent in.  ``cant`` is sent (string) or called
    (callable) when the check fails.
    """

    users: tuple[str, ...] | None = None
    roles: tuple[str, ...] | None = None
    cant: Cant | None = None


OPEN = AuthRule()


class Authorizer(Protocol):
    def __call__(self, rule: AuthRule, message: InboundMessage) -> bool: ...


def can_use(rule: AuthRule, message: InboundMessage) -> bool:
    if rule.users is None and rule.roles is None:
        return True
    if rule.users is not None and message.author.id in rule.users:
        return True
    if rule.roles is not None and message.member is not None:
        return message.member.has_role(rule.roles)
    return False


def authorize(
    rule: AuthRule, message: InboundMessage, check: Authorizer = can_use,
) -> None:
    """Raise :class:`AuthorizationDenied` unless *check* allows the author."""
    if not check(rule, message):
        raise AuthorizationDenied(rule)
