"""Tests for conversational prompts and the prompt registry."""

from __future__ import annotations

import asyncio

import pytest

from chatgate.messaging.errors import PromptEndedError, PromptEndReason
from chatgate.messaging.prompt import (
    ALREADY_ACTIVE_NOTICE,
    ATTEMPTS_NOTICE,
    CANCELLED_NOTICE,
    LiteralSet,
    MaxLength,
    Pattern,
    Predicate,
    Prompt,
    PromptOptions,
    normalize_filter,
)


async def _open(registry, user, channel, content="Question?", **options):
    task = asyncio.create_task(
        registry.prompt(user, channel, content, PromptOptions(**options))
    )
    for _ in range(5):
        await asyncio.sleep(0)
    return task


def _live(registry, user, channel) -> Prompt:
    (prompt,) = registry.find(user.id, channel.id)
    return prompt


class TestPromptCompletion:
    async def test_single_reply_returns_the_message(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5)
        reply = make_message("because")

        await _live(registry, user, channel).add_input(reply)

        assert await task is reply
        assert channel.sent == ["Question?"]
        assert len(registry) == 0

    async def test_collects_multiple_messages_in_order(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5, messages=2)
        first, second = make_message("one"), make_message("two")
        prompt = _live(registry, user, channel)

        await prompt.add_input(first)
        assert not task.done()
        await prompt.add_input(second)

        assert await task == [first, second]
        assert prompt.end_reason is PromptEndReason.success

    async def test_same_message_counts_once(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5, messages=2, attempts=0)
        prompt = _live(registry, user, channel)
        message = make_message("dup")

        await prompt.add_input(message)
        await prompt.add_input(message)
        assert not prompt.ended
        assert len(prompt.values) == 1

        other = make_message("fresh")
        await prompt.add_input(other)
        assert await task == [message, other]

    async def test_match_until_stops_collection(self, registry, user, channel, make_message):
        task = await _open(
            registry, user, channel, time=5, messages=10,
            match_until=lambda m, _p: m.content == "done",
        )
        prompt = _live(registry, user, channel)
        a, b = make_message("a"), make_message("b")

        for message in (a, b, make_message("done")):
            await prompt.add_input(message)

        assert await task == [a, b]

    async def test_add_last_match_keeps_terminator(self, registry, user, channel, make_message):
        task = await _open(
            registry, user, channel, time=5, messages=10, add_last_match=True,
            match_until=lambda m, _p: m.content == "done",
        )
        prompt = _live(registry, user, channel)
        done = make_message("done")

        await prompt.add_input(done)

        assert await task == [done]

    async def test_format_trigger_rewrites_the_question(self, registry, user, channel, make_message):
        task = await _open(
            registry, user, channel, "Pick one",
            time=5, format_trigger=lambda p, content: f"{p.user.mention} {content}",
        )
        await _live(registry, user, channel).add_input(make_message("x"))
        await task

        assert channel.sent == ["<@100> Pick one"]


class TestPromptTermination:
    async def test_time_budget_ends_with_notice(self, registry, user, channel):
        with pytest.raises(PromptEndedError) as exc:
            await registry.prompt(user, channel, "Quick!", PromptOptions(time=0.05))

        assert exc.value.reason is PromptEndReason.time
        assert channel.sent == ["Quick!", CANCELLED_NOTICE]
        assert len(registry) == 0

    async def test_time_notice_suppressed_without_auto_respond(self, registry, user, channel):
        with pytest.raises(PromptEndedError):
            await registry.prompt(
                user, channel, "Quick!", PromptOptions(time=0.05, auto_respond=False),
            )

        assert channel.sent == ["Quick!"]

    async def test_cancel_word_is_case_and_space_insensitive(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5)

        await _live(registry, user, channel).add_input(make_message("  CANCEL "))

        with pytest.raises(PromptEndedError) as exc:
            await task
        assert exc.value.reason is PromptEndReason.cancelled
        assert channel.sent[-1] == CANCELLED_NOTICE

    async def test_custom_cancel_word(self, registry, user, channel, make_message):
        task = await _open(
            registry, user, channel, time=5, cancel_word="Stop", filter=LiteralSet(("yes",)),
        )
        prompt = _live(registry, user, channel)

        await prompt.add_input(make_message("cancel"))
        assert not prompt.ended
        await prompt.add_input(make_message("stop"))

        with pytest.raises(PromptEndedError):
            await task
        assert prompt.end_reason is PromptEndReason.cancelled

    async def test_not_cancellable_treats_cancel_word_as_input(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5, cancellable=False)
        message = make_message("cancel")

        await _live(registry, user, channel).add_input(message)

        assert await task is message

    async def test_attempts_exhausted_after_corrections(self, registry, user, channel, make_message):
        task = await _open(
            registry, user, channel, "How many?",
            time=5, attempts=2, filter=Pattern(r"^\d+$"), correct="Numbers only.",
        )
        prompt = _live(registry, user, channel)

        await prompt.add_input(make_message("abc"))
        assert not prompt.ended
        await prompt.add_input(make_message("def"))

        with pytest.raises(PromptEndedError) as exc:
            await task
        assert exc.value.reason is PromptEndReason.attempts
        assert channel.sent == ["How many?", "Numbers only.", "Numbers only.", ATTEMPTS_NOTICE]

    async def test_callable_correction_with_format(self, registry, user, channel, make_message):
        task = await _open(
            registry, user, channel, time=5, attempts=0,
            filter=LiteralSet(("yes", "no")),
            correct=lambda m, _p: f"{m.content!r} is not an option",
            format_correct=lambda p, text: f"{p.user.mention} {text}",
        )
        prompt = _live(registry, user, channel)

        await prompt.add_input(make_message("maybe"))
        answer = make_message("YES")
        await prompt.add_input(answer)

        assert await task is answer
        assert channel.sent[1] == "<@100> 'maybe' is not an option"

    async def test_end_happens_exactly_once(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5)
        prompt = _live(registry, user, channel)
        await prompt.add_input(make_message("ok"))
        await task

        await prompt.end(PromptEndReason.time)
        await prompt.cancel()

        assert prompt.end_reason is PromptEndReason.success
        assert channel.sent == ["Question?"]
        assert prompt._timer is None

    async def test_input_after_end_is_ignored(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5)
        prompt = _live(registry, user, channel)
        await prompt.add_input(make_message("ok"))
        await task

        await prompt.add_input(make_message("late"))

        assert prompt.attempts == 1

    async def test_trigger_send_failure(self, registry, user, channel_factory):
        broken = channel_factory(fail=True)

        with pytest.raises(PromptEndedError) as exc:
            await registry.prompt(user, broken, "Hello?", PromptOptions(time=5))

        assert exc.value.reason is PromptEndReason.trigger_failed
        assert len(registry) == 0

    async def test_notice_failure_still_settles(self, registry, user, channel, make_message):
        task = await _open(registry, user, channel, time=5)
        prompt = _live(registry, user, channel)
        channel.fail = True

        await prompt.add_input(make_message("cancel"))

        with pytest.raises(PromptEndedError):
            await task

    def test_messages_must_be_positive(self):
        with pytest.raises(ValueError):
            PromptOptions(messages=0).resolved()


class TestPromptRegistry:
    async def test_second_prompt_for_pair_is_rejected(self, registry, user, channel):
        first = await _open(registry, user, channel, "One", time=5)

        with pytest.raises(PromptEndedError) as exc:
            await registry.prompt(user, channel, "Two", PromptOptions(time=5))

        assert exc.value.reason is PromptEndReason.already_active
        assert channel.sent == ["One", ALREADY_ACTIVE_NOTICE]
        assert len(registry) == 1

        await registry.cancel(user.id)
        with pytest.raises(PromptEndedError):
            await first

    async def test_concurrent_open_registers_only_one(self, registry, user, channel_factory):
        slow = channel_factory(delay=0.01)
        a = asyncio.create_task(registry.prompt(user, slow, "A", PromptOptions(time=5)))
        b = asyncio.create_task(registry.prompt(user, slow, "B", PromptOptions(time=5)))

        done, pending = await asyncio.wait({a, b}, timeout=0.5)

        assert len(done) == 1
        (loser,) = done
        assert isinstance(loser.exception(), PromptEndedError)
        assert loser.exception().reason is PromptEndReason.already_active
        assert len(registry) == 1
        assert ALREADY_ACTIVE_NOTICE in slow.sent

        await registry.cancel(user.id)
        await asyncio.gather(*pending, return_exceptions=True)

    async def test_coexisting_prompt_is_allowed(self, registry, user, channel):
        first = await _open(registry, user, channel, "One", time=5)
        second = await _open(registry, user, channel, "Two", time=5, coexist=True)

        assert len(registry) == 2
        assert registry.blocking(user.id, channel.id) is not None

        assert await registry.cancel(user.id, channel.id) == 2
        results = await asyncio.gather(first, second, return_exceptions=True)
        assert all(isinstance(r, PromptEndedError) for r in results)

    async def test_pairs_are_independent(self, registry, user, other_user, channel, channel_factory):
        elsewhere = channel_factory(id="c2")
        tasks = [
            await _open(registry, user, channel, time=5),
            await _open(registry, other_user, channel, time=5),
            await _open(registry, user, elsewhere, time=5),
        ]

        assert len(registry) == 3
        assert await registry.cancel(user.id) == 2
        assert len(registry) == 1

        await registry.cancel(other_user.id)
        await asyncio.gather(*tasks, return_exceptions=True)


class TestFilters:
    def _check(self, spec, content, make_message):
        return normalize_filter(spec)(make_message(content), None)

    def test_pattern_searches(self, make_message):
        assert self._check(Pattern(r"\d"), "abc 1", make_message)
        assert not self._check(Pattern(r"\d"), "abc", make_message)

    def test_literal_set_ignores_case(self, make_message):
        assert self._check(LiteralSet(("Red", "Blue")), "rEd", make_message)
        assert not self._check(LiteralSet(("Red",)), "green", make_message)

    def test_max_length_rejects_empty(self, make_message):
        assert self._check(MaxLength(3), "abc", make_message)
        assert not self._check(MaxLength(3), "abcd", make_message)
        assert not self._check(MaxLength(3), "", make_message)

    def test_predicate_and_plain_callable(self, make_message):
        assert self._check(Predicate(lambda m, _p: m.content == "x"), "x", make_message)
        assert self._check(lambda m, _p: True, "anything", make_message)

    def test_unknown_filter_rejected(self):
        with pytest.raises(TypeError):
            normalize_filter(42)  # type: ignore[arg-type]
