"""Orchestrator: the engine's exposed boundary.

An ``Orchestrator`` owns one database, provider registry, quota ledger,
stats accumulator, call router and recommendation engine. Every public
method returns a ``ServiceResponse``; errors never escape.

Usage:
    orchestrator = Orchestrator(load_config())
    await orchestrator.initialize()
    response = await orchestrator.call_ai("Summarize this", caller_id="user-1")
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from aigeek.catalog import ProviderRegistry
from aigeek.config import AIGeekConfig, load_config
from aigeek.db import Database, utcnow
from aigeek.director import MissingCapabilityPolicy, RecommendationEngine
from aigeek.exceptions import AIGeekError, ConfigurationError, NotReadyError
from aigeek.pricing import PricingManager
from aigeek.quota import QuotaLedger
from aigeek.router import CallRouter, error_detail, parse_json_response
from aigeek.stats import StatsAccumulator
from aigeek.types import CallOptions, CallStatus, ErrorDetail, ServiceResponse

logger = logging.getLogger(__name__)

_JSON = TypeAdapter(Any)

TEST_PROMPT = 'Hello, this is a test message. Please respond with "OK" if you receive this.'


def _jsonable(value: Any) -> Any:
    return _JSON.dump_python(value, mode="json")


def _call_options(options: Optional[CallOptions], kwargs: dict[str, Any]) -> CallOptions:
    """Build call options from either a ``CallOptions`` or keyword arguments."""
    if options is not None and kwargs:
        raise AIGeekError(
            "Pass call options either as CallOptions or as keyword arguments, not both",
            type="invalid_request_error",
            code="INVALID_REQUEST",
        )
    if options is not None:
        return options
    try:
        return CallOptions(**kwargs)
    except ValidationError as e:
        error = e.errors()[0]
        param = ".".join(str(part) for part in error["loc"]) or None
        raise AIGeekError(
            f"Invalid call option {param}: {error['msg']}",
            type="invalid_request_error",
            param=param,
            code="INVALID_REQUEST",
        ) from e


class Orchestrator:
    """AI provider orchestration engine.

    Args:
        config: Engine configuration (``load_config()`` when omitted)
        db: Database; built from ``config.general.database_url`` when omitted
        clock: Returns the current time; shared by ledger and registry
        transport: Optional httpx transport for every provider adapter
    """

    def __init__(
        self,
        config: Optional[AIGeekConfig] = None,
        db: Optional[Database] = None,
        clock: Callable[[], datetime] = utcnow,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or load_config()
        self.db = db or Database(self.config.general.database_url, echo=self.config.general.sql_echo)
        self.registry = ProviderRegistry(
            self.db,
            self.config.providers,
            config=self.config.catalog,
            clock=clock,
            transport=transport,
        )
        self.ledger = QuotaLedger(self.db, self.config.quota, clock=clock)
        self.pricing = PricingManager(self.db, clock=clock)
        self.stats = StatsAccumulator(
            self.ledger,
            self.pricing,
            self.registry,
            session_caller_id=self.config.quota.session_caller_id,
        )
        self.router = CallRouter(self.registry, self.ledger, self.stats, self.config.router)
        self.director = RecommendationEngine(
            self.registry,
            self.pricing,
            missing_capability_policy=MissingCapabilityPolicy(
                self.config.catalog.missing_capability_policy
            ),
        )
        self._ready = asyncio.Event()
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def initialize(self) -> None:
        """Create tables, load providers and seed pricing; then mark ready.

        Safe to call more than once.
        """
        async with self._init_lock:
            if self._ready.is_set():
                return
            await self.db.create_tables()
            await self.registry.load()
            if self.config.catalog.seed_on_initialize:
                await self.pricing.seed_initial_pricing()
                await self.pricing.seed_free_tier_information()
            self._ready.set()
        logger.info(
            f"Orchestrator ready, available providers: {', '.join(self.registry.available_providers()) or 'none'}"
        )

    async def wait_ready(self) -> None:
        await self._ready.wait()

    async def close(self) -> None:
        self._ready.clear()
        await self.db.close()

    async def _run(self, action: str, operation: Callable[[], Awaitable[Any]]) -> ServiceResponse:
        """Run an operation and convert its outcome into a ServiceResponse."""
        if not self._ready.is_set():
            error = NotReadyError()
            return ServiceResponse(success=False, error=error_detail(error))
        try:
            data = await operation()
        except AIGeekError as e:
            logger.warning(f"Failed to {action}: {e}")
            return ServiceResponse(success=False, error=error_detail(e))
        except Exception as e:
            logger.exception(f"Failed to {action}")
            return ServiceResponse.fail(
                f"Failed to {action}",
                code="INTERNAL_ERROR",
                type="internal_error",
                details=str(e),
            )
        return ServiceResponse.ok(_jsonable(data))

    @staticmethod
    def _call_response(response: ServiceResponse) -> ServiceResponse:
        """Report a routed call that ended without success as a failure."""
        if not response.success or response.data["status"] == CallStatus.SUCCEEDED.value:
            return response
        return ServiceResponse(
            success=False,
            data=response.data,
            error=ErrorDetail(**response.data["error"]),
        )

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def call_ai(self, prompt: str, options: Optional[CallOptions] = None, **kwargs: Any) -> ServiceResponse:
        """Route a prompt with admission and fallback.

        Options may be passed as a ``CallOptions`` or as keyword arguments.
        """
        response = await self._run(
            "call AI", lambda: self.router.call_ai(prompt, _call_options(options, kwargs))
        )
        return self._call_response(response)

    async def call_provider(
        self,
        provider: str,
        prompt: str,
        options: Optional[CallOptions] = None,
        **kwargs: Any,
    ) -> ServiceResponse:
        return await self._run(
            f"call {provider}",
            lambda: self.router.call_provider(provider, prompt, _call_options(options, kwargs)),
        )

    async def test_provider(self, provider: str) -> ServiceResponse:
        """Check a provider's credential with a short test prompt."""

        async def run() -> dict[str, Any]:
            result = await self.router.call_provider(provider, TEST_PROMPT, CallOptions(max_tokens=10))
            if "ok" not in (result.content or "").lower():
                raise AIGeekError(
                    f"{provider} API key test failed",
                    type="provider_test_failed",
                    code="API_TEST_FAILED",
                )
            return {"message": f"{provider} API key is valid"}

        return await self._run(f"test {provider}", run)

    def parse_json_response(self, text: Optional[str]) -> ServiceResponse:
        """Extract the JSON object from a reply; needs no initialization."""
        try:
            return ServiceResponse.ok(parse_json_response(text))
        except AIGeekError as e:
            return ServiceResponse(success=False, error=error_detail(e))

    # ------------------------------------------------------------------
    # Session statistics
    # ------------------------------------------------------------------

    async def get_session_stats(self) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            return self.stats.get_session_stats()

        return await self._run("get session stats", run)

    async def reset_session_stats(self) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            await self.stats.reset_session_stats()
            return {"message": "AI statistics reset successfully"}

        return await self._run("reset statistics", run)

    # ------------------------------------------------------------------
    # Providers and models
    # ------------------------------------------------------------------

    async def set_provider(self, provider: str) -> ServiceResponse:
        """Change the default provider used when a call names none."""

        async def run() -> dict[str, Any]:
            info = self.registry.get(provider)
            if info is None:
                raise ConfigurationError(f"Invalid provider: {provider}", provider=provider)
            self.router.default_provider = provider
            logger.info(f"Default provider set to {provider}")
            return {
                "provider": provider,
                "message": f"Provider set to {info.display_name or provider}",
            }

        return await self._run("set provider", run)

    async def get_available_providers(self) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            return {
                "providers": [
                    {
                        "name": name,
                        "display_name": self.registry.get(name).display_name,
                        "cost_per_1k_tokens": self.registry.get(name).cost_per_1k_tokens,
                    }
                    for name in self.registry.available_providers()
                ],
                "current_provider": self.router.default_provider,
            }

        return await self._run("get provider information", run)

    async def get_models(self, provider: str) -> ServiceResponse:
        async def run() -> list[dict[str, Any]]:
            if self.registry.get(provider) is None:
                raise ConfigurationError(f"Unknown provider: {provider}", provider=provider)
            return [model.model_dump(mode="json") for model in await self.registry.list_models(provider)]

        return await self._run(f"get {provider} models", run)

    async def refresh_models(self, provider: str, force: bool = True) -> ServiceResponse:
        async def run() -> list[dict[str, Any]]:
            models = await self.registry.refresh_catalog(provider, force=force)
            await self.pricing.update_pricing_for_new_models()
            return [model.model_dump(mode="json") for model in models]

        return await self._run(f"refresh {provider} models", run)

    async def set_provider_enabled(self, provider: str, enabled: bool) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            return (await self.registry.set_enabled(provider, enabled)).public_dict()

        return await self._run("update provider", run)

    async def set_provider_credential(self, provider: str, api_key: Optional[str]) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            return (await self.registry.set_credential(provider, api_key)).public_dict()

        return await self._run("update provider credential", run)

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    async def get_usage_status(self, provider: str, model_id: str, caller_id: str) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            snapshot = await self.ledger.get_usage_status(provider, model_id, caller_id)
            return snapshot.model_dump(mode="json")

        return await self._run("get usage status", run)

    async def get_provider_usage_summary(self, provider: str, caller_id: str) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            summary = await self.ledger.summarize(provider, caller_id)
            return summary.model_dump(mode="json")

        return await self._run("get provider usage summary", run)

    async def check_model_available(self, provider: str, model_id: str, caller_id: str) -> ServiceResponse:
        """Admission check without reserving anything."""

        async def run() -> dict[str, Any]:
            decision = await self.ledger.is_admissible(provider, model_id, caller_id)
            return {
                "available": decision.admissible,
                "reason": decision.reason,
                "critical_dimensions": [d.value for d in decision.critical_dimensions],
                "usage": decision.usage.model_dump(mode="json") if decision.usage else None,
            }

        return await self._run("check model availability", run)

    # ------------------------------------------------------------------
    # Recommendations and pricing
    # ------------------------------------------------------------------

    async def collect_model_information(self) -> ServiceResponse:
        return await self._run("collect model information", self.director.collect_model_information)

    async def get_cost_analysis(self, prompt: str, expected_response_length: int = 1000) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            analysis = await self.director.get_cost_analysis(prompt, expected_response_length)
            return analysis.to_dict()

        return await self._run("analyze costs", run)

    async def recommend_provider(
        self,
        task: str,
        budget: Optional[Decimal] = None,
        priority: str = "cost",
        requirements: Optional[dict[str, Any]] = None,
    ) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            recommendations = await self.director.recommend_provider(task, budget, priority, requirements)
            return recommendations.to_dict()

        return await self._run("recommend provider", run)

    async def seed_initial_pricing(self) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            return {"seeded": await self.director.seed_initial_pricing()}

        return await self._run("seed initial pricing", run)

    async def seed_free_tier_information(self) -> ServiceResponse:
        async def run() -> dict[str, Any]:
            return {"seeded": await self.director.seed_free_tier_information()}

        return await self._run("seed free tier information", run)
