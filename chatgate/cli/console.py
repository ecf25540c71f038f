"""Local console for trying commands without a Bot Framework channel.

Each line typed is delivered to the dispatcher as a message from a single
local user, so prompts, cooldowns and argument resolution behave as they
would in a chat.

Usage::

    chatgate-console
    chatgate-console --commands mybot.commands --prefix "?"
    chatgate-console --server  # treat the console as a server text channel
"""

from __future__ import annotations

import argparse
import asyncio
import itertools
import logging
import sys
from typing import Any

from rich.console import Console

from ..config.settings import cfg
from ..messaging.commands import Dispatcher
from ..messaging.formatting import render
from ..messaging.types import ChannelKind, InboundMessage, Member, Server, User
from ..server.app import build_dispatcher

logger = logging.getLogger(__name__)
console = Console()

_EXIT_WORDS = frozenset({"/quit", "/exit"})


class ConsoleChannel:
    def __init__(self, kind: ChannelKind) -> None:
        self.id = "console"
        self.kind = kind

    async def send(self, content: Any) -> None:
        console.print(f"[bold cyan]bot[/bold cyan] {render(content)}", highlight=False)


class ConsoleUsers:
    def __init__(self, *users: User) -> None:
        self._users = {u.id: u for u in users}

    async def fetch_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def cached_users(self) -> list[User]:
        return list(self._users.values())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatgate-console",
        description="Dispatch commands typed at the terminal.",
    )
    parser.add_argument(
        "--commands",
        default=None,
        help="Dotted module path exposing a 'commands' list (default: CHATGATE_COMMANDS).",
    )
    parser.add_argument(
        "--prefix",
        action="append",
        default=None,
        help="Command prefix; repeat for several (default: COMMAND_PREFIX).",
    )
    parser.add_argument("--user", default="local", help="Name of the local user.")
    parser.add_argument(
        "--server",
        action="store_true",
        default=False,
        help="Present the console as a server text channel instead of a direct chat.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=False)
    return parser


async def _run(args: argparse.Namespace) -> int:
    dispatcher = build_dispatcher(args.commands)
    if args.prefix:
        dispatcher = Dispatcher(
            dispatcher.commands, prompts=dispatcher.prompts, prefix=args.prefix,
        )

    user = User(id="1", tag=args.user, display_name=args.user)
    dispatcher.users = ConsoleUsers(user)
    kind = ChannelKind.server_text if args.server else ChannelKind.direct
    channel = ConsoleChannel(kind)
    member = Member(user) if args.server else None
    server = Server(id="console", name="console", members=[member]) if member else None

    prefixes = args.prefix or list(cfg.command_prefixes)
    console.print("[bold green]chatgate-console[/bold green]")
    console.print(
        f"[dim]{len(dispatcher.commands)} command(s) loaded. "
        f"Try {prefixes[0]}help, /quit to leave.[/dim]\n"
    )

    pending: set[asyncio.Task[None]] = set()
    ids = itertools.count(1)
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        if line.strip() in _EXIT_WORDS:
            break
        message = InboundMessage(
            id=str(next(ids)),
            content=line,
            author=user,
            channel=channel,
            server=server,
            member=member,
        )
        # Prompts wait for later lines, so dispatch must not block the reader.
        task = asyncio.create_task(dispatcher.handle(message))
        pending.add(task)
        task.add_done_callback(pending.discard)
        await asyncio.sleep(0)

    await dispatcher.prompts.cancel(user.id)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    return 0


def main() -> None:
    """CLI entry point for ``chatgate-console``."""
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )
    try:
        code = asyncio.run(_run(args))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
