"""Shared fixtures: file-backed SQLite database, controllable clock and fake adapters."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from aigeek.catalog import ProviderRegistry
from aigeek.config import CatalogConfig, ProviderSettings, QuotaConfig, RouterConfig
from aigeek.db import Database
from aigeek.pricing import PricingManager
from aigeek.providers import BaseProvider
from aigeek.quota import QuotaLedger
from aigeek.router import CallRouter
from aigeek.stats import StatsAccumulator
from aigeek.types import CatalogEntry, ProviderRequest, ProviderResponse


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 3, 10, 12, 0, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class FakeProvider(BaseProvider):
    """In-memory adapter recording every request it receives."""

    def __init__(
        self,
        name: str,
        reply: str = "OK",
        input_tokens: int = 10,
        output_tokens: int = 20,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        models: Optional[list[str]] = None,
        static: Optional[list[str]] = None,
        list_error: Optional[Exception] = None,
    ):
        super().__init__(api_key="sk-fake")
        self.provider_name = name
        self.reply = reply
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.error = error
        self.delay = delay
        self.models = models
        self.static_models = static or []
        self.list_error = list_error
        self.calls: list[ProviderRequest] = []
        self.list_calls = 0
        self.started = asyncio.Event()

    async def send(self, request: ProviderRequest, api_key: Optional[str] = None) -> ProviderResponse:
        self.calls.append(request)
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProviderResponse(
            text=self.reply,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model=request.model,
        )

    async def list_models(self, api_key: Optional[str] = None) -> list[CatalogEntry]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        if self.models is None:
            raise NotImplementedError
        return [CatalogEntry(id=model_id, display_name=model_id) for model_id in self.models]

    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        return {"prompt": request.prompt}

    def transform_response(self, response: dict[str, Any], model: str) -> ProviderResponse:
        return ProviderResponse(text=response.get("text", ""), model=model)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def db(tmp_path):
    """Fresh file-backed SQLite database per test."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'aigeek.db'}")
    await database.create_tables()
    yield database
    await database.close()


@pytest.fixture
def provider_settings():
    return {
        "anthropic": ProviderSettings(
            provider="anthropic",
            display_name="Claude 3.5 Sonnet",
            api_key="sk-ant-REDACTED",
            default_model="claude-3-5-sonnet-20241022",
            cost_per_1k_tokens="0.003",
        ),
        "groq": ProviderSettings(
            provider="groq",
            display_name="Groq Llama 3.1",
            api_key="gsk_test_key_000000000000",
            default_model="llama-3.1-8b-instant",
            cost_per_1k_tokens="0.00027",
        ),
        "gemini": ProviderSettings(
            provider="gemini",
            display_name="Gemini 1.5 Flash",
            api_key="AIza-test-key-000000000000",
            default_model="gemini-1.5-flash",
            cost_per_1k_tokens="0.00035",
        ),
        "together": ProviderSettings(
            provider="together",
            display_name="Together Llama 3.3",
            api_key=None,
            default_model="meta-llama/Llama-3.3-70B-Instruct-Turbo-Free",
            cost_per_1k_tokens="0.0002",
        ),
    }


@pytest.fixture
async def registry(db, provider_settings, clock):
    registry = ProviderRegistry(db, provider_settings, config=CatalogConfig(), clock=clock)
    await registry.load()
    return registry


@pytest.fixture
def adapters(registry):
    """Fake adapters for every configured provider."""
    fakes = {
        "anthropic": FakeProvider("anthropic", reply="from anthropic"),
        "groq": FakeProvider("groq", reply="from groq"),
        "gemini": FakeProvider("gemini", reply="from gemini"),
        "together": FakeProvider("together", reply="from together"),
    }
    for name, adapter in fakes.items():
        registry.register_adapter(name, adapter)
    return fakes


@pytest.fixture
def ledger(db, clock):
    return QuotaLedger(db, QuotaConfig(), clock=clock)


@pytest.fixture
def pricing(db, clock):
    return PricingManager(db, clock=clock)


@pytest.fixture
def stats(ledger, pricing, registry):
    return StatsAccumulator(ledger, pricing, registry)


@pytest.fixture
def router_config():
    return RouterConfig(
        default_provider="anthropic",
        fallback_order=["anthropic", "groq", "gemini"],
        timeout=5.0,
    )


@pytest.fixture
def router(registry, ledger, stats, adapters, router_config):
    return CallRouter(registry, ledger, stats, router_config)


@pytest.fixture
def fake_provider():
    """The fake adapter class, for tests that build their own."""
    return FakeProvider
