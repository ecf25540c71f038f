"""Chat messaging pipeline -- dispatcher, prompts, arguments and cooldowns.

The Bot Framework bridge lives in :mod:`chatgate.messaging.bot` and is not
imported here so the core can be used without ``botbuilder`` loaded.
"""

from .arguments import MISSING, ArgumentDefinition, ArgumentResolver, split_arguments
from .auth import AuthRule, authorize, can_use
from .commands import ChannelScope, Command, CommandContext, CommandRegistry, Dispatcher
from .cooldown import Cooldown, CooldownStore
from .errors import (
    AuthorizationDenied,
    DefinitionError,
    DispatchError,
    PromptEndedError,
    PromptEndReason,
)
from .parsers import TYPES, ArgumentType, Range, parse_duration, register_type
from .prompt import (
    LiteralSet,
    MaxLength,
    Pattern,
    Predicate,
    Prompt,
    PromptOptions,
    PromptRegistry,
)
from .types import ChannelKind, InboundMessage, Member, Role, Server, User

__all__ = [
    "MISSING",
    "ArgumentDefinition",
    "ArgumentResolver",
    "ArgumentType",
    "AuthRule",
    "AuthorizationDenied",
    "ChannelKind",
    "ChannelScope",
    "Command",
    "CommandContext",
    "CommandRegistry",
    "Cooldown",
    "CooldownStore",
    "DefinitionError",
    "Dispatcher",
    "DispatchError",
    "InboundMessage",
    "LiteralSet",
    "MaxLength",
    "Member",
    "Pattern",
    "Predicate",
    "Prompt",
    "PromptEndReason",
    "PromptEndedError",
    "PromptOptions",
    "PromptRegistry",
    "Range",
    "Role",
    "Server",
    "TYPES",
    "User",
    "authorize",
    "can_use",
    "parse_duration",
    "register_type",
    "split_arguments",
]
