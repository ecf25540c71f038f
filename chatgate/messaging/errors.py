"""Error taxonomy for the dispatch pipeline."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .auth import AuthRule


class PromptEndReason(enum.Enum):
    success = "success"
    cancelled = "cancelled"
    time = "time"
    attempts = "attempts"
    trigger_failed = "trigger-send-failed"
    already_active = "already-active"


class DispatchError(Exception):
    """Base class for errors raised by the dispatch pipeline."""


class DefinitionError(DispatchError):
    """A command's argument configuration is malformed.

    This is a defect in the command definition, not bad user input, so it
    is never retried and is always reported through ``on_error``.
    """

    def __init__(self, command_id: str, position: int, detail: str) -> None:
        self.command_id = command_id
        self.position = position
        self.detail = detail
        super().__init__(
            f"Invalid argument {position} of command {command_id!r}: {detail}"
        )


class PromptEndedError(DispatchError):
    """A prompt terminated without collecting its values."""

    def __init__(self, reason: PromptEndReason) -> None:
        self.reason = reason
        super().__init__(f"Prompt ended: {reason.value}")


class AuthorizationDenied(DispatchError):
    """The message author does not satisfy a command's :class:`AuthRule`."""

    def __init__(self, rule: AuthRule) -> None:
        self.rule = rule
        super().__init__("Not authorized to use this command")
