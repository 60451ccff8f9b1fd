"""Recommendation engine: model overview, cost analysis and provider recommendations."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from aigeek.catalog import ProviderRegistry
from aigeek.exceptions import AIGeekError
from aigeek.pricing import CostEstimate, FreeTierInfo, ModelPrice, PricingManager, estimate_cost, estimate_prompt_tokens
from aigeek.types import CapabilityProfile, QualityClass, SpeedClass

logger = logging.getLogger(__name__)

UNPRICED = Decimal("Infinity")

# Requirement flag -> task keywords that imply it
_TASK_KEYWORDS: dict[str, tuple[str, ...]] = {
    "needs_vision": ("image", "vision", "photo"),
    "needs_audio": ("audio", "speech", "whisper"),
    "needs_function_calling": ("function", "tool"),
    "needs_reasoning": ("reason", "logic", "solve"),
    "needs_code_generation": ("code", "program", "script"),
    "needs_json_output": ("json", "structured"),
}


class Priority(str, Enum):
    COST = "cost"
    SPEED = "speed"
    QUALITY = "quality"


class MissingCapabilityPolicy(str, Enum):
    """How models without capability data are treated by requirement filters.

    PERMISSIVE: the model satisfies every requirement.
    STRICT: the model satisfies none.
    """

    PERMISSIVE = "permissive"
    STRICT = "strict"


@dataclass
class TaskRequirements:
    needs_vision: bool = False
    needs_audio: bool = False
    needs_function_calling: bool = False
    needs_reasoning: bool = False
    needs_code_generation: bool = False
    needs_json_output: bool = False
    max_tokens: int = 4096

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class ModelOverview:
    """One catalog model joined with its price, free tier and capabilities."""

    provider: str
    model_id: str
    name: str
    price: Optional[ModelPrice] = None
    free_tier: Optional[FreeTierInfo] = None
    capabilities: Optional[CapabilityProfile] = None

    @property
    def is_free(self) -> bool:
        return self.free_tier is not None and self.free_tier.is_free

    @property
    def combined_price(self) -> Decimal:
        return self.price.combined_price if self.price is not None else UNPRICED

    @property
    def speed(self) -> SpeedClass:
        return self.capabilities.performance.speed if self.capabilities else SpeedClass.MEDIUM

    @property
    def quality(self) -> QualityClass:
        return self.capabilities.performance.quality if self.capabilities else QualityClass.GOOD

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.model_id,
            "name": self.name,
            "pricing": self.price.to_dict() if self.price else {"input": None, "output": None},
            "free_tier": (
                self.free_tier.to_dict()
                if self.free_tier
                else {"is_free": False, "limits": {}, "notes": ""}
            ),
            "capabilities": self.capabilities.model_dump(mode="json") if self.capabilities else None,
        }


@dataclass
class ProviderOverview:
    name: str
    has_api_key: bool
    is_enabled: bool
    models: list[ModelOverview] = field(default_factory=list)

    @property
    def is_usable(self) -> bool:
        return self.has_api_key and self.is_enabled

    def to_dict(self) -> dict[str, Any]:
        return {
            "models": [model.to_dict() for model in self.models],
            "total_models": len(self.models),
            "has_api_key": self.has_api_key,
            "is_enabled": self.is_enabled,
        }


@dataclass
class CostAnalysis:
    prompt_length: int
    expected_response_length: int
    providers: dict[str, list[CostEstimate]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis": {
                name: {"models": [estimate.to_dict() for estimate in estimates]}
                for name, estimates in self.providers.items()
            },
            "prompt_length": self.prompt_length,
            "expected_response_length": self.expected_response_length,
        }


@dataclass
class Recommendation:
    provider: str
    model: ModelOverview
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        model = self.model.to_dict()
        return {
            "provider": self.provider,
            "model": model,
            "reasoning": self.reasoning,
            "capabilities": model["capabilities"],
        }


@dataclass
class RecommendationSet:
    task: str
    budget: Optional[Decimal]
    priority: Priority
    requirements: TaskRequirements
    recommendations: list[Recommendation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "task": self.task,
            "budget": str(self.budget) if self.budget is not None else None,
            "priority": self.priority.value,
            "requirements": self.requirements.to_dict(),
        }


def parse_task_requirements(task: str, requirements: Optional[dict[str, Any]] = None) -> TaskRequirements:
    """Derive requirement flags from task keywords.

    Explicit ``requirements`` values that are not None win over keywords.
    """
    task_lower = (task or "").lower()
    derived = TaskRequirements(**{
        flag: any(keyword in task_lower for keyword in keywords)
        for flag, keywords in _TASK_KEYWORDS.items()
    })
    for key, value in (requirements or {}).items():
        if value is None:
            continue
        if not hasattr(derived, key):
            raise AIGeekError(
                f"Unknown requirement: {key}",
                type="invalid_request_error",
                param=key,
                code="INVALID_REQUIREMENT",
            )
        setattr(derived, key, value)
    return derived


def generate_reasoning(model: ModelOverview, requirements: TaskRequirements, priority: Priority) -> str:
    """Short human-readable reason for recommending ``model``."""
    reasons = []
    capabilities = model.capabilities

    if model.is_free:
        reasons.append("Free tier available")
    if requirements.needs_vision and capabilities and capabilities.supports_vision:
        reasons.append("Supports vision tasks")
    if (
        requirements.needs_reasoning
        and capabilities
        and capabilities.performance.reasoning != QualityClass.BASIC
    ):
        reasons.append("Good reasoning capabilities")
    if priority == Priority.SPEED and model.speed == SpeedClass.ULTRA_FAST:
        reasons.append("Ultra-fast inference")
    if priority == Priority.QUALITY and model.quality == QualityClass.STATE_OF_THE_ART:
        reasons.append("State-of-the-art quality")
    if priority == Priority.COST and model.is_free:
        reasons.append("Cost-effective (free tier)")

    return ", ".join(reasons) or f"Best {priority.value} option"


def _priority_key(priority: Priority):
    if priority == Priority.COST:
        return lambda model: model.combined_price
    if priority == Priority.SPEED:
        return lambda model: model.speed.rank
    return lambda model: model.quality.rank


class RecommendationEngine:
    """Read-side analysis over the provider registry and pricing tables.

    Args:
        registry: Provider configuration and model catalog
        pricing: Prices and free tiers
        missing_capability_policy: Treatment of models without capability data
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        pricing: PricingManager,
        missing_capability_policy: MissingCapabilityPolicy = MissingCapabilityPolicy.PERMISSIVE,
    ):
        self.registry = registry
        self.pricing = pricing
        self.missing_capability_policy = MissingCapabilityPolicy(missing_capability_policy)

    async def _gather(self, refresh: bool = True) -> list[ProviderOverview]:
        """Provider overviews in configuration order, refreshing due catalogs first."""
        providers = self.registry.providers()

        if refresh:
            for info in providers:
                if not self.registry.is_usable(info.name):
                    continue
                if not await self.registry.should_refresh(info.name):
                    continue
                try:
                    await self.registry.refresh_catalog(info.name)
                except AIGeekError as e:
                    logger.warning(f"Failed to refresh {info.name} models: {e}")
            await self.pricing.update_pricing_for_new_models()

        overviews = []
        for info in providers:
            prices = await self.pricing.list_pricing(info.name)
            free_tiers = await self.pricing.list_free_tiers(info.name)
            models = [
                ModelOverview(
                    provider=info.name,
                    model_id=model.model_id,
                    name=model.name,
                    price=prices.get(model.model_id),
                    free_tier=free_tiers.get(model.model_id),
                    capabilities=model.capabilities,
                )
                for model in await self.registry.list_models(info.name)
            ]
            overviews.append(ProviderOverview(
                name=info.name,
                has_api_key=info.has_credential,
                is_enabled=info.enabled,
                models=models,
            ))
        return overviews

    async def collect_model_information(self, refresh: bool = True) -> dict[str, Any]:
        """Per-provider models with pricing, free tier and capabilities, plus a summary."""
        overviews = await self._gather(refresh)
        return {
            "providers": {overview.name: overview.to_dict() for overview in overviews},
            "summary": {
                "total_providers": len(overviews),
                "total_models": sum(len(o.models) for o in overviews),
                "providers_with_keys": sum(1 for o in overviews if o.has_api_key),
                "enabled_providers": sum(1 for o in overviews if o.is_enabled),
            },
        }

    async def get_cost_analysis(self, prompt: str, expected_response_length: int = 1000) -> CostAnalysis:
        """Estimated cost of a prompt on every model of every usable provider.

        Each provider's models are sorted by estimated cost ascending;
        ties keep catalog order and unpriced models come last.
        """
        input_tokens = estimate_prompt_tokens(prompt)
        analysis = CostAnalysis(
            prompt_length=len(prompt or ""),
            expected_response_length=expected_response_length,
        )

        for overview in await self._gather():
            if not overview.is_usable:
                continue
            estimates = []
            for model in overview.models:
                estimate = CostEstimate(
                    provider=overview.name,
                    model_id=model.model_id,
                    model_name=model.name,
                    estimated_input_tokens=input_tokens,
                    estimated_output_tokens=expected_response_length,
                    is_free=model.is_free,
                )
                if model.price is not None:
                    estimate.input_price = model.price.input_price
                    estimate.output_price = model.price.output_price
                    estimate.estimated_cost = estimate_cost(
                        input_tokens,
                        expected_response_length,
                        model.price.input_price,
                        model.price.output_price,
                    )
                estimates.append(estimate)
            estimates.sort(key=lambda e: (not e.is_priced, e.estimated_cost or Decimal("0")))
            analysis.providers[overview.name] = estimates

        return analysis

    def _satisfies(self, model: ModelOverview, requirements: TaskRequirements) -> bool:
        capabilities = model.capabilities
        if capabilities is None:
            return self.missing_capability_policy == MissingCapabilityPolicy.PERMISSIVE

        if requirements.needs_vision and not capabilities.supports_vision:
            return False
        if requirements.needs_audio and not capabilities.supports_audio:
            return False
        if requirements.needs_function_calling and not capabilities.supports_function_calling:
            return False
        if requirements.needs_reasoning and capabilities.performance.reasoning == QualityClass.BASIC:
            return False
        if requirements.needs_code_generation and not capabilities.tasks.code_generation:
            return False
        if requirements.needs_json_output and not capabilities.supports_json_output:
            return False
        return True

    async def recommend_provider(
        self,
        task: str,
        budget: Optional[Decimal] = None,
        priority: str = "cost",
        requirements: Optional[dict[str, Any]] = None,
    ) -> RecommendationSet:
        """Best model per usable provider for a task, ranked by priority.

        Args:
            task: Free-text task description
            budget: Maximum combined input+output price per 1k tokens
            priority: "cost", "speed" or "quality"
            requirements: Explicit requirement flags overriding keywords

        Returns:
            Recommendations sorted best first
        """
        try:
            priority = Priority(priority)
        except ValueError:
            raise AIGeekError(
                f"Unknown priority: {priority}",
                type="invalid_request_error",
                param="priority",
                code="INVALID_PRIORITY",
            )
        if budget is not None:
            budget = Decimal(str(budget))

        task_requirements = parse_task_requirements(task, requirements)
        key = _priority_key(priority)
        result = RecommendationSet(
            task=task,
            budget=budget,
            priority=priority,
            requirements=task_requirements,
        )

        for overview in await self._gather():
            if not overview.is_usable:
                continue
            suitable = [m for m in overview.models if self._satisfies(m, task_requirements)]
            if budget is not None:
                suitable = [m for m in suitable if m.combined_price <= budget]
            if not suitable:
                continue

            best = min(suitable, key=key)
            result.recommendations.append(Recommendation(
                provider=overview.name,
                model=best,
                reasoning=generate_reasoning(best, task_requirements, priority),
            ))

        result.recommendations.sort(key=lambda r: key(r.model))
        return result

    async def seed_initial_pricing(self) -> int:
        return await self.pricing.seed_initial_pricing()

    async def seed_free_tier_information(self) -> int:
        return await self.pricing.seed_free_tier_information()

    async def update_pricing_for_new_models(self) -> int:
        return await self.pricing.update_pricing_for_new_models()
