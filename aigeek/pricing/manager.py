"""Pricing and free-tier lookups backed by the database.

Hierarchy for a model's price:
1. ``ai_pricing`` row (seeded or administratively set)
2. Built-in table in ``aigeek.db.seed_data`` (copied into the database by
   ``update_pricing_for_new_models`` once the model appears in the catalog)
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select

from aigeek.db import Database, FreeTierRecord, ModelRecord, PricingRecord, utcnow
from aigeek.db.seed_data import FREE_TIERS, MODEL_PRICING
from aigeek.types import LimitSet

from .models import FreeTierInfo, ModelPrice

logger = logging.getLogger(__name__)


def builtin_price(provider: str, model_id: str) -> Optional[ModelPrice]:
    """Price from the built-in table, if listed."""
    entry = MODEL_PRICING.get(provider, {}).get(model_id)
    if entry is None:
        return None
    return ModelPrice(
        provider=provider,
        model_id=model_id,
        input_price=Decimal(entry[0]),
        output_price=Decimal(entry[1]),
    )


def _price(row: PricingRecord) -> ModelPrice:
    return ModelPrice(
        provider=row.provider,
        model_id=row.model_id,
        input_price=Decimal(str(row.input_price)),
        output_price=Decimal(str(row.output_price)),
        currency=row.currency,
        unit=row.unit,
    )


def _free_tier(row: FreeTierRecord) -> FreeTierInfo:
    return FreeTierInfo(
        provider=row.provider,
        model_id=row.model_id,
        is_free=row.is_free,
        limits=LimitSet(**(row.limits or {})),
        notes=row.notes or "",
    )


class PricingManager:
    """Reads and seeds model prices and free-tier allowances.

    Usage:
        manager = PricingManager(db)
        price = await manager.get_pricing("groq", "llama-3.1-8b-instant")
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    async def get_pricing(self, provider: str, model_id: str) -> Optional[ModelPrice]:
        async with self.db.session() as session:
            result = await session.execute(
                select(PricingRecord).where(
                    PricingRecord.provider == provider,
                    PricingRecord.model_id == model_id,
                    PricingRecord.is_active.is_(True),
                )
            )
            row = result.scalar_one_or_none()
            return _price(row) if row else None

    async def list_pricing(self, provider: str) -> dict[str, ModelPrice]:
        """Active prices for a provider keyed by model id."""
        async with self.db.session() as session:
            result = await session.execute(
                select(PricingRecord).where(
                    PricingRecord.provider == provider,
                    PricingRecord.is_active.is_(True),
                )
            )
            return {row.model_id: _price(row) for row in result.scalars().all()}

    async def get_free_tier(self, provider: str, model_id: str) -> Optional[FreeTierInfo]:
        async with self.db.session() as session:
            result = await session.execute(
                select(FreeTierRecord).where(
                    FreeTierRecord.provider == provider,
                    FreeTierRecord.model_id == model_id,
                )
            )
            row = result.scalar_one_or_none()
            return _free_tier(row) if row else None

    async def list_free_tiers(self, provider: str) -> dict[str, FreeTierInfo]:
        async with self.db.session() as session:
            result = await session.execute(
                select(FreeTierRecord).where(FreeTierRecord.provider == provider)
            )
            return {row.model_id: _free_tier(row) for row in result.scalars().all()}

    async def set_pricing(
        self,
        provider: str,
        model_id: str,
        input_price: Decimal,
        output_price: Decimal,
    ) -> ModelPrice:
        """Upsert one model's price (per 1000 tokens)."""
        async with self.db.session() as session:
            await self._upsert_price(session, provider, model_id, input_price, output_price)
        return ModelPrice(provider=provider, model_id=model_id, input_price=input_price, output_price=output_price)

    async def _upsert_price(self, session, provider, model_id, input_price, output_price) -> None:
        result = await session.execute(
            select(PricingRecord).where(
                PricingRecord.provider == provider,
                PricingRecord.model_id == model_id,
            )
        )
        row = result.scalar_one_or_none()
        now = self._clock()
        if row is None:
            session.add(PricingRecord(
                provider=provider,
                model_id=model_id,
                input_price=input_price,
                output_price=output_price,
                currency="USD",
                unit="per_1k_tokens",
                is_active=True,
                last_updated=now,
            ))
        else:
            row.input_price = input_price
            row.output_price = output_price
            row.is_active = True
            row.last_updated = now

    async def seed_initial_pricing(self) -> int:
        """Upsert the built-in price table.

        Returns:
            Number of prices written
        """
        count = 0
        async with self.db.session() as session:
            for provider, models in MODEL_PRICING.items():
                for model_id, (input_price, output_price) in models.items():
                    await self._upsert_price(
                        session, provider, model_id, Decimal(input_price), Decimal(output_price)
                    )
                    count += 1
        logger.info(f"Seeded {count} model prices")
        return count

    async def seed_free_tier_information(self) -> int:
        """Upsert the built-in free-tier table.

        Returns:
            Number of free-tier records written
        """
        async with self.db.session() as session:
            for entry in FREE_TIERS:
                result = await session.execute(
                    select(FreeTierRecord).where(
                        FreeTierRecord.provider == entry["provider"],
                        FreeTierRecord.model_id == entry["model_id"],
                    )
                )
                row = result.scalar_one_or_none()
                limits = LimitSet(**entry["limits"]).model_dump()
                if row is None:
                    session.add(FreeTierRecord(
                        provider=entry["provider"],
                        model_id=entry["model_id"],
                        is_free=entry["is_free"],
                        limits=limits,
                        notes=entry["notes"],
                    ))
                else:
                    row.is_free = entry["is_free"]
                    row.limits = limits
                    row.notes = entry["notes"]
        logger.info(f"Seeded {len(FREE_TIERS)} free tier records")
        return len(FREE_TIERS)

    async def set_free_tier(
        self,
        provider: str,
        model_id: str,
        is_free: bool,
        limits: LimitSet,
        notes: str = "",
    ) -> FreeTierInfo:
        """Upsert one model's free-tier allowance."""
        async with self.db.session() as session:
            result = await session.execute(
                select(FreeTierRecord).where(
                    FreeTierRecord.provider == provider,
                    FreeTierRecord.model_id == model_id,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(FreeTierRecord(
                    provider=provider,
                    model_id=model_id,
                    is_free=is_free,
                    limits=limits.model_dump(),
                    notes=notes,
                ))
            else:
                row.is_free = is_free
                row.limits = limits.model_dump()
                row.notes = notes
        return FreeTierInfo(provider=provider, model_id=model_id, is_free=is_free, limits=limits, notes=notes)

    async def update_pricing_for_new_models(self) -> int:
        """Add built-in prices for active catalog models that have none.

        Returns:
            Number of prices added
        """
        added = 0
        async with self.db.session() as session:
            models = (await session.execute(
                select(ModelRecord).where(ModelRecord.is_active.is_(True))
            )).scalars().all()
            priced = {
                (row.provider, row.model_id)
                for row in (await session.execute(select(PricingRecord))).scalars().all()
            }

            for model in models:
                if (model.provider, model.model_id) in priced:
                    continue
                price = builtin_price(model.provider, model.model_id)
                if price is None:
                    continue
                await self._upsert_price(
                    session, model.provider, model.model_id, price.input_price, price.output_price
                )
                priced.add((model.provider, model.model_id))
                added += 1
                logger.info(f"Added pricing for {model.provider}/{model.model_id}")
        return added
