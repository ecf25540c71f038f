"""Shared pytest fixtures for chatgate tests."""

from __future__ import annotations

import asyncio
import itertools
from pathlib import Path
from typing import Any

import pytest

from chatgate.messaging.prompt import PromptRegistry
from chatgate.messaging.types import ChannelKind, InboundMessage, Member, Role, Server, User


class FakeChannel:
    """Records everything sent to it."""

    def __init__(
        self,
        id: str = "c1",
        kind: ChannelKind = ChannelKind.server_text,
        *,
        fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.id = id
        self.kind = kind
        self.fail = fail
        self.delay = delay
        self.sent: list[Any] = []

    async def send(self, content: Any) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("send failed")
        self.sent.append(content)


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next real suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("CHATGATE_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    return data_dir


@pytest.fixture(autouse=True)
def _reset_singletons(_isolate_data_dir: Path):
    from chatgate.util.singletons import reset_all_singletons

    reset_all_singletons()
    yield
    reset_all_singletons()


@pytest.fixture()
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir


@pytest.fixture()
def channel_factory() -> type[FakeChannel]:
    return FakeChannel


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def user() -> User:
    return User(id="100", tag="alice#0001", display_name="Alice")


@pytest.fixture()
def other_user() -> User:
    return User(id="200", tag="bob", display_name="Bob")


@pytest.fixture()
def server(user: User, other_user: User) -> Server:
    return Server(
        id="s1",
        name="guild",
        members=[
            Member(user),
            Member(other_user, roles=[Role("9", "Mod")], nickname="Bobby"),
        ],
    )


@pytest.fixture()
def registry() -> PromptRegistry:
    return PromptRegistry()


@pytest.fixture()
def make_message(user: User, channel: FakeChannel):
    ids = itertools.count(1)

    def _make(
        content: str,
        *,
        author: User | None = None,
        channel: Any = channel,
        server: Server | None = None,
        member: Member | None = None,
    ) -> InboundMessage:
        return InboundMessage(
            id=f"m{next(ids)}",
            content=content,
            author=author or user,
            channel=channel,
            server=server,
            member=member,
        )

    return _make


@pytest.fixture()
def settle_loop():
    return settle
