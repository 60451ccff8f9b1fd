"""Tests for session billing and statistics."""

import asyncio
from decimal import Decimal

import pytest

from aigeek.exceptions import ConfigurationError
from aigeek.types import LimitSet


class TestBilling:
    """Test free versus metered billing."""

    async def test_metered_call(self, stats):
        """A model without a free tier is billed at the provider's per-1k rate."""
        charge = await stats.update_stats("anthropic", 100, 400)

        assert charge.cost == Decimal("0.0015")
        assert charge.is_free is False
        assert charge.total_tokens == 500
        assert charge.model_id == "claude-3-5-sonnet-20241022"
        assert charge.app_name == "default"

    async def test_free_until_daily_limit(self, stats, pricing):
        await pricing.set_free_tier("groq", "llama-3.1-8b-instant", True, LimitSet(requests_per_day=5))

        charges = [await stats.update_stats("groq", 10, 20) for _ in range(6)]

        assert [c.is_free for c in charges] == [True] * 5 + [False]
        assert all(c.cost == 0 for c in charges[:5])
        assert charges[5].cost == Decimal("0.0000081")

        session = stats.get_session_stats()
        assert session["free_calls"] == 5
        assert session["paid_calls"] == 1
        assert session["cost"] == Decimal("0.0000081")

    async def test_free_tier_without_limits_is_metered(self, stats, pricing):
        await pricing.set_free_tier("groq", "llama-3.1-8b-instant", True, LimitSet())

        charge = await stats.update_stats("groq", 500, 500)

        assert charge.is_free is False
        assert charge.cost == Decimal("0.00027")

    async def test_non_free_tier_is_metered(self, stats, pricing):
        await pricing.set_free_tier("gemini", "gemini-1.5-flash", False, LimitSet(requests_per_day=100))

        charge = await stats.update_stats("gemini", 1000, 1000)

        assert charge.is_free is False
        assert charge.cost == Decimal("0.0007")

    async def test_meters_session_usage(self, stats, ledger):
        await stats.update_stats("anthropic", 100, 400, model_id="claude-3-5-haiku-20241022")

        status = await ledger.get_usage_status("anthropic", "claude-3-5-haiku-20241022", "session")

        assert status.current_day.requests == 1
        assert status.current_day.tokens == 500

    async def test_unknown_provider(self, stats):
        with pytest.raises(ConfigurationError):
            await stats.update_stats("mistral", 1, 1)


class TestSessionStats:
    """Test aggregate buckets."""

    async def test_empty(self, stats):
        session = stats.get_session_stats()

        assert session["calls"] == 0
        assert session["cost"] == Decimal("0")
        assert session["average_cost_per_call"] == Decimal("0")
        assert session["providers"] == {}

    async def test_buckets(self, stats):
        await stats.update_stats("anthropic", 100, 400, app_name="writer")
        await stats.update_stats("anthropic", 200, 800, app_name="reviewer")
        await stats.update_stats("anthropic", 100, 400, app_name="writer")
        await stats.update_stats("groq", 1000, 0)

        session = stats.get_session_stats()

        assert session["calls"] == 4
        assert session["tokens"] == 3000
        assert session["cost"] == Decimal("0.00627")
        assert session["average_cost_per_call"] == Decimal("0.0015675")

        anthropic = session["providers"]["anthropic"]
        assert anthropic["calls"] == 3
        assert anthropic["cost"] == Decimal("0.006")
        assert anthropic["apps"]["writer"]["calls"] == 2
        assert anthropic["apps"]["writer"]["cost"] == Decimal("0.003")
        assert anthropic["apps"]["reviewer"]["tokens"] == 1000
        assert session["providers"]["groq"]["apps"]["default"]["calls"] == 1

    async def test_reset(self, stats, ledger):
        await stats.update_stats("anthropic", 100, 400)

        await stats.reset_session_stats()

        session = stats.get_session_stats()
        assert session["calls"] == 0
        assert session["providers"] == {}
        # Persisted usage survives a reset
        status = await ledger.get_usage_status("anthropic", "claude-3-5-sonnet-20241022", "session")
        assert status.current_day.requests == 1

    async def test_concurrent_updates(self, stats):
        await asyncio.gather(*[stats.update_stats("groq", 10, 10) for _ in range(20)])

        session = stats.get_session_stats()

        assert session["calls"] == 20
        assert session["tokens"] == 400
        assert session["providers"]["groq"]["calls"] == 20
