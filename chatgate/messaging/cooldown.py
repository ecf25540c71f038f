"""Per-participant rate limiting for commands."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Protocol, Union

from ..config.settings import cfg
from ..util.async_helpers import maybe_await
from .types import InboundMessage

logger = logging.getLogger(__name__)

MIN_LENGTH = 0.1
# Largest delay a 32-bit millisecond timer can hold.  Longer cooldowns need
# a store that can restore them after a restart.
MAX_TIMER_LENGTH = 2_147_483_647 / 1000

Notice = Union[str, Callable[[InboundMessage], Any]]


class CooldownStore(Protocol):
    """Persistence for active cooldowns (participant id -> expiry epoch)."""

    def get(self) -> Mapping[str, float]: ...

    def set(self, user_id: str, expires_at: float) -> None: ...

    def update(self, user_id: str, expires_at: float) -> None: ...

    def delete(self, user_id: str) -> None: ...


class Cooldown:
    """Tracks which participants may not run a command yet.

    *notice* is sent (string) or called (callable, may be async) when a
    participant on cooldown tries again, at most once per channel every
    *notice_delay* seconds.
    """

    def __init__(
        self,
        length: float,
        *,
        store: CooldownStore | None = None,
        notice: Notice | None = None,
        notice_delay: float | None = None,
    ) -> None:
        restorable = store is not None and callable(getattr(store, "get", None))
        if length < MIN_LENGTH or (length > MAX_TIMER_LENGTH and not restorable):
            raise ValueError(
                f"Cooldown length {length}s is below {MIN_LENGTH}s or above "
                f"{MAX_TIMER_LENGTH}s without a store able to restore it"
            )

        self.length = length
        self.notice = notice
        self.notice_delay = cfg.cooldown_notice_delay if notice_delay is None else notice_delay

        self._store = store
        self._expiries: dict[str, float] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._notified: set[str] = set()

        self._load_cache()

    def _load_cache(self) -> None:
        if self._store is None:
            return
        self._expiries = {str(k): float(v) for k, v in self._store.get().items()}
        logger.info("[cooldown.load] restored %d active cooldown(s)", len(self._expiries))

    def on_cooldown(self, user_id: str) -> bool:
        expires_at = self._expiries.get(user_id)
        if expires_at is None:
            return False
        if expires_at <= time.time():
            self.expire(user_id)
            return False
        return True

    def remaining(self, user_id: str) -> float:
        """Seconds until *user_id* may run the command again."""
        if not self.on_cooldown(user_id):
            return 0.0
        return max(0.0, self._expiries[user_id] - time.time())

    def start(self, user_id: str) -> None:
        """Put *user_id* on cooldown, restarting the window if already active."""
        expires_at = time.time() + self.length
        timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()

        if self._store is not None:
            if self.on_cooldown(user_id):
                self._store.update(user_id, expires_at)
            else:
                self._store.set(user_id, expires_at)
        self._expiries[user_id] = expires_at
        self._arm(user_id, self.length)

    def expire(self, user_id: str) -> None:
        timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()
        if self._expiries.pop(user_id, None) is not None and self._store is not None:
            self._store.delete(user_id)

    async def handle(self, message: InboundMessage) -> None:
        """Tell the participant they are on cooldown, throttled per channel."""
        channel_id = message.channel.id
        if self.notice is None or channel_id in self._notified:
            return

        self._notified.add(channel_id)
        asyncio.get_running_loop().call_later(
            self.notice_delay, self._notified.discard, channel_id,
        )

        if isinstance(self.notice, str):
            await message.channel.send(self.notice)
        else:
            await maybe_await(self.notice(message))

    def _arm(self, user_id: str, delay: float) -> None:
        # Without a running loop (or beyond the timer range) the entry is
        # expired lazily by on_cooldown.
        if delay > MAX_TIMER_LENGTH:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[user_id] = loop.call_later(delay, self.expire, user_id)
