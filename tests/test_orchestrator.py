"""Tests for the Orchestrator boundary."""

import asyncio
from decimal import Decimal

import pytest

from aigeek import Orchestrator
from aigeek.config import AIGeekConfig
from aigeek.exceptions import APIConnectionError, ServiceUnavailableError
from aigeek.types import CallOptions, LimitSet


@pytest.fixture
def config(provider_settings, router_config):
    return AIGeekConfig(providers=provider_settings, router=router_config)


@pytest.fixture
def build(config, db, clock, fake_provider):
    """Orchestrator with fake adapters, not yet initialized."""

    def factory():
        orchestrator = Orchestrator(config, db=db, clock=clock)
        for name in config.providers:
            orchestrator.registry.register_adapter(name, fake_provider(name, reply=f"OK from {name}"))
        return orchestrator

    return factory


@pytest.fixture
async def orchestrator(build):
    orchestrator = build()
    await orchestrator.initialize()
    return orchestrator


def fakes(orchestrator):
    return {name: orchestrator.registry.adapter(name) for name in ("anthropic", "groq", "gemini")}


class TestLifecycle:
    """Test readiness handling."""

    async def test_not_ready(self, build):
        orchestrator = build()

        response = await orchestrator.call_ai("Hello")

        assert orchestrator.is_ready is False
        assert response.success is False
        assert response.error.code == "NOT_READY"

    async def test_parse_needs_no_initialization(self, build):
        response = build().parse_json_response('reply: {"a": 1}')

        assert response.success is True
        assert response.data == {"a": 1}

    async def test_initialize_is_idempotent(self, build):
        orchestrator = build()

        await asyncio.gather(orchestrator.initialize(), orchestrator.initialize())
        await orchestrator.initialize()

        assert orchestrator.is_ready is True
        assert (await orchestrator.get_session_stats()).success is True

    async def test_wait_ready(self, build):
        orchestrator = build()
        waiter = asyncio.create_task(orchestrator.wait_ready())
        await asyncio.sleep(0)
        assert not waiter.done()

        await orchestrator.initialize()

        await asyncio.wait_for(waiter, 1)

    async def test_initialize_seeds_pricing(self, orchestrator):
        price = await orchestrator.pricing.get_pricing("groq", "llama-3.1-8b-instant")
        tier = await orchestrator.pricing.get_free_tier("gemini", "gemini-1.5-flash")

        assert price is not None
        assert tier.is_free is True

    async def test_close(self, build):
        orchestrator = build()
        await orchestrator.initialize()

        await orchestrator.close()

        assert orchestrator.is_ready is False


class TestCalls:
    """Test routed and direct calls."""

    async def test_call_ai(self, orchestrator):
        response = await orchestrator.call_ai("Hello")

        assert response.success is True
        assert response.error is None
        data = response.data
        assert data["status"] == "succeeded"
        assert data["content"] == "OK from anthropic"
        assert data["provider"] == "anthropic"
        assert data["model"] == "claude-3-5-sonnet-20241022"
        assert data["fallback_used"] is False
        assert isinstance(data["cost"], str)
        assert Decimal(data["cost"]) == Decimal("0.00009")

    async def test_call_ai_keyword_options(self, orchestrator):
        response = await orchestrator.call_ai("Hello", provider="groq", caller_id="alice", app_name="writer")

        assert response.data["provider"] == "groq"
        assert response.data["is_free"] is True
        assert response.data["usage"]["caller_id"] == "alice"

    async def test_all_failed(self, orchestrator):
        for adapter in fakes(orchestrator).values():
            adapter.error = ServiceUnavailableError("down", provider=adapter.provider_name)

        response = await orchestrator.call_ai("Hello")

        assert response.success is False
        assert response.error.code == "ALL_PROVIDERS_FAILED"
        assert response.error.details == "down"
        assert response.data["status"] == "all_failed"
        assert len(response.data["attempts"]) == 3

    async def test_quota_rejected(self, orchestrator):
        await orchestrator.pricing.set_free_tier("groq", "llama-3.1-8b-instant", True, LimitSet(requests_per_minute=1))
        await orchestrator.call_ai("Hello", provider="groq", caller_id="alice")

        response = await orchestrator.call_ai("Hello", provider="groq", caller_id="alice")

        assert response.success is False
        assert response.error.code == "QUOTA_EXCEEDED"
        assert response.data["status"] == "rejected_quota"

    async def test_call_provider(self, orchestrator):
        response = await orchestrator.call_provider("gemini", "Hello", max_tokens=5)

        assert response.success is True
        assert response.data["content"] == "OK from gemini"
        assert fakes(orchestrator)["gemini"].calls[0].max_tokens == 5

    async def test_call_provider_failure(self, orchestrator):
        fakes(orchestrator)["gemini"].error = APIConnectionError("refused", provider="gemini")

        response = await orchestrator.call_provider("gemini", "Hello")

        assert response.success is False
        assert response.error.code == "CONNECTION_ERROR"
        assert response.error.message == "refused"

    async def test_invalid_keyword_option(self, orchestrator):
        response = await orchestrator.call_ai("Hello", max_tokens="lots")

        assert response.success is False
        assert response.error.code == "INVALID_REQUEST"
        assert response.error.param == "max_tokens"
        assert fakes(orchestrator)["anthropic"].calls == []

    async def test_invalid_keyword_option_direct_call(self, orchestrator):
        response = await orchestrator.call_provider("groq", "Hello", temperature="hot")

        assert response.success is False
        assert response.error.code == "INVALID_REQUEST"
        assert response.error.param == "temperature"

    async def test_unknown_keyword_option(self, orchestrator):
        response = await orchestrator.call_ai("Hello", max_token=5)

        assert response.success is False
        assert response.error.code == "INVALID_REQUEST"
        assert response.error.param == "max_token"

    async def test_options_and_keywords_together(self, orchestrator):
        response = await orchestrator.call_ai("Hello", CallOptions(provider="groq"), caller_id="alice")
        direct = await orchestrator.call_provider("groq", "Hello", CallOptions(), max_tokens=5)

        assert response.error.code == "INVALID_REQUEST"
        assert direct.error.code == "INVALID_REQUEST"
        assert fakes(orchestrator)["groq"].calls == []

    async def test_parse_json_failure(self, orchestrator):
        response = orchestrator.parse_json_response("no json here")

        assert response.success is False
        assert response.error.code == "NO_JSON_FOUND"

    async def test_internal_error(self, orchestrator):
        async def broken(*args, **kwargs):
            raise RuntimeError("boom")

        orchestrator.director.collect_model_information = broken

        response = await orchestrator.collect_model_information()

        assert response.success is False
        assert response.error.code == "INTERNAL_ERROR"
        assert response.error.message == "Failed to collect model information"
        assert response.error.details == "boom"


class TestProviderTest:
    """Test credential checks."""

    async def test_valid(self, orchestrator):
        response = await orchestrator.test_provider("groq")

        assert response.success is True
        assert response.data == {"message": "groq API key is valid"}
        assert fakes(orchestrator)["groq"].calls[0].max_tokens == 10

    async def test_unexpected_reply(self, orchestrator):
        fakes(orchestrator)["groq"].reply = "Hi there"

        response = await orchestrator.test_provider("groq")

        assert response.success is False
        assert response.error.code == "API_TEST_FAILED"

    async def test_missing_key(self, orchestrator):
        response = await orchestrator.test_provider("together")

        assert response.success is False
        assert response.error.code == "PROVIDER_NOT_CONFIGURED"


class TestStats:
    """Test session statistics through the boundary."""

    async def test_stats(self, orchestrator):
        await orchestrator.call_ai("Hello")
        await orchestrator.call_ai("Hello", provider="groq")

        response = await orchestrator.get_session_stats()

        data = response.data
        assert data["calls"] == 2
        assert data["free_calls"] == 1
        assert data["paid_calls"] == 1
        assert isinstance(data["cost"], str)
        assert Decimal(data["average_cost_per_call"]) == Decimal("0.000045")
        assert data["providers"]["groq"]["apps"]["default"]["calls"] == 1

    async def test_reset(self, orchestrator):
        await orchestrator.call_ai("Hello")

        response = await orchestrator.reset_session_stats()

        assert response.data == {"message": "AI statistics reset successfully"}
        assert (await orchestrator.get_session_stats()).data["calls"] == 0


class TestProviders:
    """Test provider administration."""

    async def test_available_providers(self, orchestrator):
        response = await orchestrator.get_available_providers()

        assert [p["name"] for p in response.data["providers"]] == ["anthropic", "groq", "gemini"]
        assert response.data["current_provider"] == "anthropic"
        assert Decimal(response.data["providers"][1]["cost_per_1k_tokens"]) == Decimal("0.00027")

    async def test_set_provider(self, orchestrator):
        response = await orchestrator.set_provider("gemini")

        assert response.success is True
        assert response.data["message"] == "Provider set to Gemini 1.5 Flash"
        assert (await orchestrator.get_available_providers()).data["current_provider"] == "gemini"
        assert (await orchestrator.call_ai("Hello")).data["provider"] == "gemini"

    async def test_set_invalid_provider(self, orchestrator):
        response = await orchestrator.set_provider("mistral")

        assert response.success is False
        assert response.error.message == "Invalid provider: mistral"

    async def test_enable_and_credential(self, orchestrator):
        response = await orchestrator.set_provider_credential("together", "tg-test-key")

        assert response.data["has_credential"] is True
        assert "api_key" not in response.data

        await orchestrator.set_provider_enabled("groq", False)
        names = [p["name"] for p in (await orchestrator.get_available_providers()).data["providers"]]
        assert names == ["anthropic", "gemini", "together"]

    async def test_models(self, orchestrator):
        fakes(orchestrator)["groq"].models = ["llama-3.1-8b-instant", "gemma2-9b-it"]

        refreshed = await orchestrator.refresh_models("groq")
        listed = await orchestrator.get_models("groq")

        assert [m["model_id"] for m in refreshed.data] == ["gemma2-9b-it", "llama-3.1-8b-instant"]
        assert [m["model_id"] for m in listed.data] == ["gemma2-9b-it", "llama-3.1-8b-instant"]
        assert (await orchestrator.get_models("mistral")).error.code == "PROVIDER_NOT_CONFIGURED"


class TestUsage:
    """Test usage reporting."""

    async def test_usage_views(self, orchestrator):
        await orchestrator.call_ai("Hello", provider="groq", caller_id="alice")

        status = await orchestrator.get_usage_status("groq", "llama-3.1-8b-instant", "alice")
        summary = await orchestrator.get_provider_usage_summary("groq", "alice")
        available = await orchestrator.check_model_available("groq", "llama-3.1-8b-instant", "alice")

        assert status.data["current_day"]["requests"] == 1
        assert status.data["limits"]["requests_per_minute"] == 50
        assert summary.data["total_requests"] == 1
        assert summary.data["total_tokens"] == 30
        assert available.data["available"] is True
        assert available.data["critical_dimensions"] == ["requests_per_minute", "tokens_per_minute"]


class TestRecommendations:
    """Test recommendation and pricing operations."""

    async def test_seed_counts(self, orchestrator):
        assert (await orchestrator.seed_initial_pricing()).data == {"seeded": 40}
        assert (await orchestrator.seed_free_tier_information()).data == {"seeded": 29}

    async def test_recommend(self, orchestrator):
        fakes(orchestrator)["groq"].models = ["llama-3.1-8b-instant"]

        response = await orchestrator.recommend_provider("chat", budget=Decimal("0.01"))

        assert response.success is True
        assert response.data["recommendations"][0]["provider"] == "groq"
        assert response.data["budget"] == "0.01"

    async def test_invalid_priority(self, orchestrator):
        response = await orchestrator.recommend_provider("chat", priority="vibes")

        assert response.error.code == "INVALID_PRIORITY"

    async def test_cost_analysis(self, orchestrator):
        fakes(orchestrator)["gemini"].models = ["gemini-1.5-flash"]

        response = await orchestrator.get_cost_analysis("x" * 40, 100)

        flash = response.data["analysis"]["gemini"]["models"][0]
        assert flash["estimated_input_tokens"] == 10
        assert Decimal(flash["estimated_cost"]) == Decimal("0.00003075")
        assert flash["is_free"] is True

    async def test_collect(self, orchestrator):
        response = await orchestrator.collect_model_information()

        assert response.data["summary"]["total_providers"] == 4
