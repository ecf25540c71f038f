"""Command model, registry and the inbound message dispatcher.

- ``_command``    -- Command, ChannelScope, CommandRegistry, record adapter
- ``_context``    -- CommandContext handed to ``execute``
- ``_dispatcher`` -- Dispatcher pipeline (prompts, prefix, gates, invoke)
- ``builtin``     -- commands shipped with the package
"""

from ._command import ChannelScope, Command, CommandRegistry, command_from_record
from ._context import CommandContext
from ._dispatcher import Dispatcher, log_command_error, mention_forms

__all__ = [
    "ChannelScope",
    "Command",
    "CommandContext",
    "CommandRegistry",
    "Dispatcher",
    "command_from_record",
    "log_command_error",
    "mention_forms",
]
