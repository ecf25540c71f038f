"""Conversational prompts -- collect follow-up messages from one participant.

A :class:`Prompt` waits for replies from a single user in a single channel.
It ends exactly once, for the first of: enough matching replies, the cancel
keyword, too many attempts, or its time budget running out.  The result is
exposed as an :class:`asyncio.Future` so callers simply ``await`` it::

    reply = await registry.prompt(user, channel, "What is the reason?")

Every live prompt is owned by a :class:`PromptRegistry`.  The dispatcher
consults the same registry to route replies, and argument resolution and
command handlers open prompts through it, so the one-prompt-per-pair rule
is enforced in a single place.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, replace
from typing import Any, Union

from ..config.settings import cfg
from ..util.async_helpers import maybe_await
from .errors import PromptEndedError, PromptEndReason
from .types import Channel, InboundMessage, User

logger = logging.getLogger(__name__)

PromptCheck = Callable[[InboundMessage, "Prompt"], Union[bool, Awaitable[bool]]]
Correction = Callable[[InboundMessage, "Prompt"], Any]

CANCELLED_NOTICE = "Cancelled prompt."
ATTEMPTS_NOTICE = "Too many attempts."
ALREADY_ACTIVE_NOTICE = (
    "You already have a currently running prompt in this channel. "
    "Finish or cancel that prompt before running another."
)

_NOTICES: dict[PromptEndReason, str] = {
    PromptEndReason.cancelled: CANCELLED_NOTICE,
    PromptEndReason.time: CANCELLED_NOTICE,
    PromptEndReason.attempts: ATTEMPTS_NOTICE,
}


# ---------------------------------------------------------------------------
# Reply filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Predicate:
    """Accept a reply when ``check(message, prompt)`` is truthy (may be async)."""

    check: PromptCheck


@dataclass(frozen=True)
class Pattern:
    """Accept a reply whose content matches *regex* anywhere."""

    regex: re.Pattern[str] | str

    def compiled(self) -> re.Pattern[str]:
        return self.regex if isinstance(self.regex, re.Pattern) else re.compile(self.regex)


@dataclass(frozen=True)
class LiteralSet:
    """Accept a reply equal (case-insensitively) to one of *values*."""

    values: tuple[str, ...]


@dataclass(frozen=True)
class MaxLength:
    """Accept a non-empty reply of at most *limit* characters."""

    limit: int


PromptFilter = Union[Predicate, Pattern, LiteralSet, MaxLength]


def _accept_all(_message: InboundMessage, _prompt: Prompt) -> bool:
    return True


def normalize_filter(spec: PromptFilter | PromptCheck | None) -> PromptCheck:
    """Collapse a filter variant into a single ``(message, prompt)`` predicate."""
    if spec is None:
        return _accept_all
    if isinstance(spec, Predicate):
        return spec.check
    if isinstance(spec, Pattern):
        regex = spec.compiled()
        return lambda m, _p: regex.search(m.content) is not None
    if isinstance(spec, LiteralSet):
        allowed = frozenset(v.lower() for v in spec.values)
        return lambda m, _p: m.content.lower() in allowed
    if isinstance(spec, MaxLength):
        limit = spec.limit
        return lambda m, _p: 0 < len(m.content) <= limit
    if callable(spec):
        return spec
    raise TypeError(f"Unsupported prompt filter: {spec!r}")


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass
class PromptOptions:
    """Prompt configuration.

    ``None`` for ``time``, ``attempts`` or ``cancel_word`` means "use the
    configured default" (see :mod:`chatgate.config.settings`).  A ``time``
    of ``0`` or ``math.inf`` disables the timer, and ``attempts=0``
    allows unlimited attempts.  An untimed prompt can only end through a
    reply, cancellation or attempts, so it is best avoided.
    """

    filter: PromptFilter | PromptCheck | None = None
    correct: str | Correction | None = None
    format_trigger: Callable[[Prompt, Any], Any] | None = None
    format_correct: Callable[[Prompt, str], str] | None = None
    cancellable: bool = True
    cancel_word: str | None = None
    auto_respond: bool = True
    messages: int = 1
    attempts: int | None = None
    time: float | None = None
    match_until: PromptCheck | None = None
    add_last_match: bool = False
    coexist: bool = False

    def resolved(self) -> PromptOptions:
        """Return a copy with configured defaults filled in."""
        if self.messages < 1:
            raise ValueError("PromptOptions.messages must be at least 1")
        return replace(
            self,
            cancel_word=(self.cancel_word or cfg.prompt_cancel_word).lower(),
            attempts=cfg.prompt_attempts if self.attempts is None else self.attempts,
            time=cfg.prompt_time if self.time is None else self.time,
        )


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


class Prompt:
    """One outstanding request for input from *user* in *channel*.

    Construct through :meth:`PromptRegistry.prompt`; building one directly
    requires a running event loop because the time budget is armed
    immediately.
    """

    def __init__(
        self,
        user: User,
        channel: Channel,
        options: PromptOptions,
        registry: PromptRegistry,
    ) -> None:
        loop = asyncio.get_running_loop()

        self.user = user
        self.channel = channel
        self.options = options
        self.started_at = time.monotonic()

        self.ended = False
        self.end_reason: PromptEndReason | None = None
        self.attempts = 0
        self.values: dict[str, InboundMessage] = {}

        self._registry = registry
        self._check = normalize_filter(options.filter)
        self._result: asyncio.Future[Any] = loop.create_future()
        self._timer: asyncio.TimerHandle | None = None
        self._timeout_task: asyncio.Task[None] | None = None

        budget = options.time or 0
        if 0 < budget < math.inf:
            self._timer = loop.call_later(budget, self._on_timeout)

    @property
    def state(self) -> str:
        return self.end_reason.value if self.end_reason else "active"

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def matches(self, user_id: str, channel_id: str) -> bool:
        return self.user.id == user_id and self.channel.id == channel_id

    async def wait(self) -> Any:
        """Wait for the prompt to end; return its value or raise ``PromptEndedError``."""
        return await self._result

    async def add_input(self, message: InboundMessage) -> None:
        """Feed one reply from the prompted user into the prompt."""
        if self.ended:
            return

        self.attempts += 1
        opts = self.options

        if opts.cancellable and message.content.strip().lower() == opts.cancel_word:
            await self.end(PromptEndReason.cancelled)
            return

        if await maybe_await(self._check(message, self)):
            if opts.match_until is not None and await maybe_await(opts.match_until(message, self)):
                if opts.add_last_match:
                    self.values[message.id] = message
                await self.end(PromptEndReason.success)
                return
            self.values[message.id] = message
        else:
            await self._correct(message)

        # The filter or correction may have suspended long enough for the
        # timer to end the prompt.
        if self.ended:
            return

        if len(self.values) >= opts.messages:
            await self.end(PromptEndReason.success)
        elif opts.attempts and self.attempts >= opts.attempts:
            await self.end(PromptEndReason.attempts)

    async def cancel(self) -> None:
        await self.end(PromptEndReason.cancelled)

    async def end(self, reason: PromptEndReason) -> None:
        """Terminate the prompt; only the first call has any effect."""
        if self.ended:
            return

        self.ended = True
        self.end_reason = reason
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._registry.discard(self)

        logger.info(
            "[prompt.end] user=%s channel=%s reason=%s attempts=%d values=%d",
            self.user.id, self.channel.id, reason.value, self.attempts, len(self.values),
        )

        try:
            notice = _NOTICES.get(reason)
            if self.options.auto_respond and notice:
                try:
                    await self.channel.send(notice)
                except Exception:
                    logger.warning(
                        "[prompt.end] failed to send %s notice: channel=%s",
                        reason.value, self.channel.id, exc_info=True,
                    )
        finally:
            self._settle(reason)

    def _settle(self, reason: PromptEndReason) -> None:
        if self._result.done():
            return
        if reason is not PromptEndReason.success:
            self._result.set_exception(PromptEndedError(reason))
            return
        collected = list(self.values.values())
        if self.options.messages == 1:
            self._result.set_result(collected[0] if collected else None)
        else:
            self._result.set_result(collected)

    def _on_timeout(self) -> None:
        self._timer = None
        self._timeout_task = asyncio.ensure_future(self.end(PromptEndReason.time))

    async def _correct(self, message: InboundMessage) -> None:
        correct = self.options.correct
        if correct is None:
            return
        text = correct if isinstance(correct, str) else await maybe_await(correct(message, self))
        if not isinstance(text, str):
            return
        if self.options.format_correct is not None:
            text = self.options.format_correct(self, text)
        await message.channel.send(text)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class PromptRegistry:
    """All live prompts.

    At most one non-coexisting prompt may exist per ``(user, channel)``
    pair.  :meth:`add` performs the check and the insert without
    suspending, which keeps it atomic with respect to other coroutines on
    the loop.
    """

    def __init__(self) -> None:
        self._prompts: list[Prompt] = []

    def __len__(self) -> int:
        return len(self._prompts)

    def __iter__(self) -> Iterator[Prompt]:
        return iter(list(self._prompts))

    def find(self, user_id: str, channel_id: str) -> list[Prompt]:
        """Return the live prompts for a pair, oldest first."""
        return [p for p in self._prompts if p.matches(user_id, channel_id) and not p.ended]

    def blocking(self, user_id: str, channel_id: str) -> Prompt | None:
        """Return the pair's exclusive prompt, if any."""
        for prompt in self.find(user_id, channel_id):
            if not prompt.options.coexist:
                return prompt
        return None

    def add(self, prompt: Prompt) -> bool:
        """Insert *prompt* unless it would break the one-prompt-per-pair rule."""
        if prompt.ended:
            return False
        if not prompt.options.coexist and self.blocking(prompt.user.id, prompt.channel.id):
            return False
        self._prompts.append(prompt)
        return True

    def discard(self, prompt: Prompt) -> None:
        try:
            self._prompts.remove(prompt)
        except ValueError:
            pass

    async def cancel(self, user_id: str, channel_id: str | None = None) -> int:
        """End a user's prompts (optionally in one channel); return how many ended."""
        targets = [
            p for p in self._prompts
            if p.user.id == user_id and (channel_id is None or p.channel.id == channel_id)
        ]
        for prompt in targets:
            await prompt.cancel()
        return len(targets)

    async def prompt(
        self,
        user: User,
        channel: Channel,
        content: Any = None,
        options: PromptOptions | None = None,
    ) -> Any:
        """Send *content* to *channel* and wait for *user* to answer.

        Returns a single message when one reply is required, otherwise the
        ordered list of collected messages.  Raises
        :class:`PromptEndedError` when the prompt ends any other way.
        """
        opts = (options or PromptOptions()).resolved()

        if not opts.coexist and self.blocking(user.id, channel.id):
            return await self._reject_duplicate(user, channel)

        prompt = Prompt(user, channel, opts, self)
        if opts.format_trigger is not None:
            content = opts.format_trigger(prompt, content)

        if content is not None:
            try:
                await channel.send(content)
            except Exception:
                logger.warning(
                    "[prompt.open] trigger message failed to send: user=%s channel=%s",
                    user.id, channel.id, exc_info=True,
                )
                await prompt.end(PromptEndReason.trigger_failed)
                return await prompt.wait()

        # Another prompt may have claimed the pair while the trigger was
        # being sent.
        if not self.add(prompt):
            await prompt.end(PromptEndReason.already_active)
            return await self._reject_duplicate(user, channel, prompt)

        logger.info(
            "[prompt.open] user=%s channel=%s messages=%d attempts=%s time=%s",
            user.id, channel.id, opts.messages, opts.attempts, opts.time,
        )
        return await prompt.wait()

    async def _reject_duplicate(
        self, user: User, channel: Channel, prompt: Prompt | None = None,
    ) -> Any:
        logger.info(
            "[prompt.open] rejected, prompt already active: user=%s channel=%s",
            user.id, channel.id,
        )
        try:
            await channel.send(ALREADY_ACTIVE_NOTICE)
        except Exception:
            logger.warning("[prompt.open] failed to send duplicate notice", exc_info=True)
        if prompt is not None:
            # Retrieve the settled exception so it is not reported as unhandled.
            prompt._result.exception()
        raise PromptEndedError(PromptEndReason.already_active)
