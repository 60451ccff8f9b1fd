"""Tests for the quota ledger."""

import asyncio

import pytest
from sqlalchemy import select

from aigeek.db import UsageRecord
from aigeek.types import LimitDimension, LimitSet, UsageDelta


async def usage_rows(db):
    async with db.session() as session:
        result = await session.execute(select(UsageRecord))
        return list(result.scalars().all())


@pytest.fixture
async def groq_limits(pricing):
    await pricing.set_free_tier(
        "groq",
        "llama-3.1-8b-instant",
        True,
        LimitSet(requests_per_minute=2, requests_per_day=100, tokens_per_minute=6000, tokens_per_day=500000),
    )


@pytest.fixture
async def gemini_limits(pricing):
    await pricing.set_free_tier(
        "gemini",
        "gemini-1.5-flash",
        True,
        LimitSet(requests_per_minute=1, requests_per_day=3, tokens_per_day=1000000),
    )


class TestRecordUsage:
    """Test recording usage into windows."""

    async def test_record_usage(self, ledger, groq_limits):
        snapshot = await ledger.record_usage(
            "groq", "llama-3.1-8b-instant", "session",
            UsageDelta(requests=1, input_tokens=100, output_tokens=50),
        )

        assert snapshot.minute.requests == 1
        assert snapshot.minute.tokens == 150
        assert snapshot.current_day.requests == 1
        assert snapshot.current_day.tokens == 150
        assert snapshot.limits.requests_per_minute == 2
        assert snapshot.percentages.requests_per_minute == 50.0
        assert snapshot.percentages.tokens_per_minute == pytest.approx(2.5)
        assert snapshot.is_near_limit.any() is False

    async def test_callers_are_independent(self, ledger, groq_limits):
        await ledger.record_usage("groq", "llama-3.1-8b-instant", "alice", UsageDelta(requests=2))

        bob = await ledger.get_usage_status("groq", "llama-3.1-8b-instant", "bob")
        alice = await ledger.get_usage_status("groq", "llama-3.1-8b-instant", "alice")

        assert bob.current_day.requests == 0
        assert alice.current_day.requests == 2
        assert alice.is_at_limit.requests_per_minute is True

    async def test_audio_accumulates_hourly(self, ledger, pricing, clock):
        await pricing.set_free_tier("groq", "whisper-large-v3", True, LimitSet(audio_seconds_per_hour=100))

        await ledger.record_usage("groq", "whisper-large-v3", "session", UsageDelta(audio_seconds=60))
        clock.advance(minutes=10)
        snapshot = await ledger.record_usage("groq", "whisper-large-v3", "session", UsageDelta(audio_seconds=40))

        assert snapshot.minute.audio_seconds == 40
        assert snapshot.hour.audio_seconds == 100
        assert snapshot.is_at_limit.audio_seconds_per_hour is True

    async def test_unknown_model_has_empty_limits(self, ledger):
        snapshot = await ledger.get_usage_status("anthropic", "claude-3-5-sonnet-20241022", "session")

        assert snapshot.limits.is_empty
        assert snapshot.minute.requests == 0
        assert snapshot.minute.window_start is not None


class TestWindowRollover:
    """Test that stale windows reset."""

    async def test_minute_rolls_over(self, ledger, groq_limits, clock):
        await ledger.record_usage("groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=2))

        clock.advance(seconds=40)
        snapshot = await ledger.get_usage_status("groq", "llama-3.1-8b-instant", "session")

        assert snapshot.minute.requests == 0
        assert snapshot.current_day.requests == 2
        assert snapshot.is_at_limit.requests_per_minute is False

    async def test_read_does_not_persist_roll(self, db, ledger, groq_limits, clock):
        """Reading a stale window reports zero but leaves the stored counters alone."""
        await ledger.record_usage("groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=2))
        clock.advance(minutes=5)

        await ledger.get_usage_status("groq", "llama-3.1-8b-instant", "session")

        rows = await usage_rows(db)
        assert len(rows) == 1
        assert rows[0].minute_requests == 2

    async def test_write_persists_roll(self, db, ledger, groq_limits, clock):
        await ledger.record_usage("groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=2))
        clock.advance(minutes=5)

        snapshot = await ledger.record_usage("groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=1))

        assert snapshot.minute.requests == 1
        assert snapshot.current_day.requests == 3
        rows = await usage_rows(db)
        assert rows[0].minute_requests == 1
        assert rows[0].day_requests == 3

    async def test_new_day_starts_fresh(self, db, ledger, groq_limits, clock):
        await ledger.record_usage("groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=2))
        clock.advance(days=1)

        snapshot = await ledger.get_usage_status("groq", "llama-3.1-8b-instant", "session")
        assert snapshot.current_day.requests == 0
        assert snapshot.day == clock().date()
        assert snapshot.limits.requests_per_minute == 2

        await ledger.record_usage("groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=1))
        assert len(await usage_rows(db)) == 2


class TestAdmission:
    """Test admission checks and reservations."""

    async def test_zero_limits_always_admissible(self, ledger):
        await ledger.record_usage(
            "anthropic", "claude-3-5-sonnet-20241022", "session",
            UsageDelta(requests=10000, input_tokens=10 ** 7),
        )

        decision = await ledger.is_admissible("anthropic", "claude-3-5-sonnet-20241022", "session")

        assert decision.admissible is True
        assert decision.critical_dimensions == list(LimitDimension)

    async def test_minute_bound_provider(self, ledger, groq_limits, clock):
        first = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")
        second = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")
        third = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")

        assert first.admissible and first.reserved
        assert second.admissible and second.reserved
        assert third.admissible is False
        assert third.reserved is False
        assert "requests_per_minute" in third.reason
        assert third.usage.current_day.requests == 2

        clock.advance(minutes=1)
        assert (await ledger.is_admissible("groq", "llama-3.1-8b-instant", "session")).admissible

    async def test_day_bound_provider_ignores_minute_limits(self, ledger, gemini_limits):
        """Gemini is only checked on daily dimensions."""
        await ledger.record_usage("gemini", "gemini-1.5-flash", "session", UsageDelta(requests=1))

        decision = await ledger.is_admissible("gemini", "gemini-1.5-flash", "session")

        assert decision.usage.is_at_limit.requests_per_minute is True
        assert decision.admissible is True
        assert decision.critical_dimensions == [LimitDimension.REQUESTS_PER_DAY, LimitDimension.TOKENS_PER_DAY]

    async def test_day_bound_provider_blocks_at_daily_cap(self, ledger, gemini_limits):
        await ledger.record_usage("gemini", "gemini-1.5-flash", "session", UsageDelta(requests=3))

        decision = await ledger.is_admissible("gemini", "gemini-1.5-flash", "session")

        assert decision.admissible is False
        assert decision.reason == "Free tier limit reached: requests_per_day"

    async def test_minute_bound_provider_ignores_daily_limits(self, ledger, pricing):
        await pricing.set_free_tier("groq", "gemma2-9b-it", True, LimitSet(requests_per_day=1))
        await ledger.record_usage("groq", "gemma2-9b-it", "session", UsageDelta(requests=5))

        assert (await ledger.is_admissible("groq", "gemma2-9b-it", "session")).admissible is True

    async def test_concurrent_reservations_never_overshoot(self, ledger, pricing):
        await pricing.set_free_tier("groq", "llama-3.1-8b-instant", True, LimitSet(requests_per_minute=5))

        decisions = await asyncio.gather(*[
            ledger.reserve("groq", "llama-3.1-8b-instant", "session") for _ in range(10)
        ])

        assert sum(1 for d in decisions if d.admissible) == 5
        status = await ledger.get_usage_status("groq", "llama-3.1-8b-instant", "session")
        assert status.minute.requests == 5


class TestRelease:
    """Test undoing reservations."""

    async def test_release(self, ledger, groq_limits):
        reservation = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")

        snapshot = await ledger.release(reservation)

        assert snapshot.minute.requests == 0
        assert snapshot.current_day.requests == 0

    async def test_release_never_goes_negative(self, ledger, groq_limits):
        reservation = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")

        await ledger.release(reservation)
        snapshot = await ledger.release(reservation)

        assert snapshot.minute.requests == 0
        assert snapshot.current_day.requests == 0

    async def test_release_after_minute_rolled_keeps_new_minute(self, ledger, groq_limits, clock):
        reservation = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")
        clock.advance(minutes=1)
        await ledger.record_usage("groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=1))

        snapshot = await ledger.release(reservation)

        assert snapshot.minute.requests == 1
        assert snapshot.current_day.requests == 1

    async def test_release_unreserved_decision(self, ledger, groq_limits):
        decision = await ledger.is_admissible("groq", "llama-3.1-8b-instant", "session")

        assert await ledger.release(decision) is None

    async def test_release_on_next_day_is_noop(self, ledger, groq_limits, clock):
        reservation = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")
        clock.advance(days=1)

        assert await ledger.release(reservation) is None


class TestMeter:
    """Test metering for billing."""

    async def test_within_limits_requires_tracked_limits(self, ledger):
        result = await ledger.meter("anthropic", "claude-3-5-sonnet-20241022", "session", UsageDelta(requests=1))

        assert result.within_limits is False
        assert result.snapshot.current_day.requests == 1

    async def test_within_limits_uses_state_before_call(self, ledger, gemini_limits):
        results = []
        for _ in range(4):
            results.append(await ledger.meter("gemini", "gemini-1.5-flash", "session", UsageDelta(requests=1)))

        # The minute limit of 1 is hit after the first call
        assert [r.within_limits for r in results] == [True, False, False, False]
        assert results[-1].snapshot.current_day.requests == 4

    async def test_reservation_held_until_metered(self, ledger, groq_limits):
        first = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")
        await ledger.reserve("groq", "llama-3.1-8b-instant", "session")

        result = await ledger.meter(
            "groq", "llama-3.1-8b-instant", "session",
            UsageDelta(requests=1, input_tokens=10, output_tokens=20),
            reservation=first,
        )

        assert result.within_limits is True
        assert result.snapshot.minute.requests == 2
        assert result.snapshot.current_day.tokens == 30
        # The metered call still occupies its slot
        third = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")
        assert third.admissible is False

    async def test_reservation_at_limit_still_billed_free(self, ledger, gemini_limits):
        reservation = await ledger.reserve("gemini", "gemini-1.5-flash", "session")

        result = await ledger.meter(
            "gemini", "gemini-1.5-flash", "session", UsageDelta(requests=1), reservation=reservation
        )

        assert result.within_limits is True
        assert result.snapshot.current_day.requests == 1

    async def test_reservation_from_previous_day(self, ledger, groq_limits, clock):
        reservation = await ledger.reserve("groq", "llama-3.1-8b-instant", "session")
        clock.advance(days=1)

        result = await ledger.meter(
            "groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=1), reservation=reservation
        )

        assert result.snapshot.current_day.requests == 1

    async def test_reservation_for_another_key(self, ledger, groq_limits):
        reservation = await ledger.reserve("groq", "llama-3.1-8b-instant", "alice")

        with pytest.raises(ValueError):
            await ledger.meter(
                "groq", "llama-3.1-8b-instant", "session", UsageDelta(requests=1), reservation=reservation
            )


class TestPercentages:
    """Test percentage bounds as usage accumulates."""

    async def test_monotonic_within_window(self, ledger, pricing):
        await pricing.set_free_tier(
            "groq",
            "llama-3.1-8b-instant",
            True,
            LimitSet(requests_per_minute=5, requests_per_day=8, tokens_per_minute=1000, tokens_per_day=2500),
        )

        previous = None
        for _ in range(12):
            snapshot = await ledger.record_usage(
                "groq", "llama-3.1-8b-instant", "alice",
                UsageDelta(requests=1, input_tokens=150, output_tokens=100),
            )
            for dimension in LimitDimension:
                value = snapshot.percentages.get(dimension)
                assert 0 <= value <= 100
                if previous is not None:
                    assert value >= previous.percentages.get(dimension)
                if snapshot.is_at_limit.get(dimension):
                    assert snapshot.is_near_limit.get(dimension)
            previous = snapshot

        assert snapshot.percentages.requests_per_minute == 100
        assert snapshot.percentages.tokens_per_day == 100
        assert snapshot.current_day.requests == 12


class TestSummarize:
    """Test per-provider summaries."""

    async def test_summarize(self, ledger, groq_limits):
        await ledger.record_usage(
            "groq", "llama-3.1-8b-instant", "session",
            UsageDelta(requests=2, input_tokens=10, output_tokens=20),
        )
        await ledger.record_usage("groq", "gemma2-9b-it", "session", UsageDelta(requests=1, input_tokens=5))
        await ledger.record_usage("groq", "gemma2-9b-it", "other", UsageDelta(requests=7))
        await ledger.record_usage("gemini", "gemini-1.5-flash", "session", UsageDelta(requests=1))

        summary = await ledger.summarize("groq", "session")

        assert summary.total_requests == 3
        assert summary.total_tokens == 35
        assert [m.model_id for m in summary.models] == ["gemma2-9b-it", "llama-3.1-8b-instant"]
        assert summary.is_at_any_limit is True
        assert summary.is_near_any_limit is True

    async def test_summarize_empty(self, ledger):
        summary = await ledger.summarize("together", "session")

        assert summary.total_requests == 0
        assert summary.models == []
        assert summary.is_at_any_limit is False
