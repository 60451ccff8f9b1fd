"""Session cost and usage statistics.

Every successful call is written back here. The accumulator decides whether
the call was free (free-tier model with no session limit reached before the
call) or metered at the provider's flat per-1k-token rate, and adds it to
in-memory buckets: overall, per provider and per provider per application.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from aigeek.catalog import ProviderRegistry
from aigeek.exceptions import ConfigurationError
from aigeek.pricing import PricingManager, metered_cost
from aigeek.pricing.calculator import quantize_cost
from aigeek.quota import QuotaLedger
from aigeek.types import AdmissionDecision, CallCharge, UsageDelta

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "default"


@dataclass
class StatsBucket:
    """Running totals for one slice of session traffic."""

    calls: int = 0
    tokens: int = 0
    cost: Decimal = Decimal("0")
    free_calls: int = 0
    paid_calls: int = 0

    def add(self, charge: CallCharge) -> None:
        self.calls += 1
        self.tokens += charge.total_tokens
        self.cost += charge.cost
        if charge.is_free:
            self.free_calls += 1
        else:
            self.paid_calls += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "tokens": self.tokens,
            "cost": self.cost,
            "free_calls": self.free_calls,
            "paid_calls": self.paid_calls,
        }


@dataclass
class ProviderStats(StatsBucket):
    apps: dict[str, StatsBucket] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["apps"] = {name: bucket.to_dict() for name, bucket in self.apps.items()}
        return data


class StatsAccumulator:
    """Bills completed calls and keeps session statistics.

    Args:
        ledger: Quota ledger used to meter session usage against free tiers
        pricing: Free-tier lookups
        registry: Provider configuration (metered rate, default model)
        session_caller_id: Caller id under which session usage is metered
    """

    def __init__(
        self,
        ledger: QuotaLedger,
        pricing: PricingManager,
        registry: ProviderRegistry,
        session_caller_id: str = "session",
    ):
        self.ledger = ledger
        self.pricing = pricing
        self.registry = registry
        self.session_caller_id = session_caller_id
        self._lock = asyncio.Lock()
        self._totals = StatsBucket()
        self._providers: dict[str, ProviderStats] = {}

    async def update_stats(
        self,
        provider: str,
        input_tokens: int,
        output_tokens: int,
        model_id: Optional[str] = None,
        app_name: Optional[str] = None,
        reservation: Optional[AdmissionDecision] = None,
    ) -> CallCharge:
        """Bill one successful call and add it to the session buckets.

        Args:
            provider: Provider that served the call
            input_tokens: Prompt tokens
            output_tokens: Completion tokens
            model_id: Model that served the call (provider default if omitted)
            app_name: Application the call is attributed to
            reservation: Held reservation on the session key, consumed by this call

        Returns:
            The charge for the call

        Raises:
            ConfigurationError: If the provider is unknown
        """
        info = self.registry.get(provider)
        if info is None:
            raise ConfigurationError(f"Unknown provider: {provider}", provider=provider)

        model_id = model_id or info.default_model
        app_name = app_name or DEFAULT_APP_NAME
        total_tokens = input_tokens + output_tokens

        metered = await self.ledger.meter(
            provider,
            model_id,
            self.session_caller_id,
            UsageDelta(requests=1, input_tokens=input_tokens, output_tokens=output_tokens),
            reservation=reservation,
        )
        free_tier = await self.pricing.get_free_tier(provider, model_id)
        is_free = free_tier is not None and free_tier.is_free and metered.within_limits

        cost = Decimal("0") if is_free else metered_cost(total_tokens, info.cost_per_1k_tokens)
        charge = CallCharge(
            provider=provider,
            model_id=model_id,
            app_name=app_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            cost=cost,
            is_free=is_free,
        )

        async with self._lock:
            self._totals.add(charge)
            bucket = self._providers.setdefault(provider, ProviderStats())
            bucket.add(charge)
            bucket.apps.setdefault(app_name, StatsBucket()).add(charge)

        logger.debug(
            f"Billed {provider}/{model_id} for {app_name}: {total_tokens} tokens, "
            f"{'free' if is_free else f'${cost}'}"
        )
        return charge

    def get_session_stats(self) -> dict[str, Any]:
        """Aggregate session statistics."""
        data = self._totals.to_dict()
        data["average_cost_per_call"] = (
            quantize_cost(self._totals.cost / self._totals.calls)
            if self._totals.calls
            else Decimal("0")
        )
        data["providers"] = {name: bucket.to_dict() for name, bucket in self._providers.items()}
        return data

    async def reset_session_stats(self) -> None:
        """Clear in-memory statistics; persisted usage is untouched."""
        async with self._lock:
            self._totals = StatsBucket()
            self._providers = {}
        logger.info("Session stats reset")
