"""Provider registry: provider configuration, adapters and model catalog.

Call paths read providers from an immutable in-memory snapshot; every
administrative change writes the ``provider_configs`` row and swaps in a
new snapshot.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from aigeek.catalog.capabilities import resolve_capabilities
from aigeek.config import CatalogConfig, ProviderSettings, mask_secret
from aigeek.db import Database, ModelRecord, ProviderConfig, as_utc, utcnow
from aigeek.exceptions import AIGeekError, ConfigurationError
from aigeek.providers import AdapterRegistry, BaseProvider
from aigeek.types import CapabilityProfile, CatalogEntry, ModelInfo, ProviderInfo

logger = logging.getLogger(__name__)


def _provider_info(row: ProviderConfig) -> ProviderInfo:
    return ProviderInfo(
        name=row.name,
        display_name=row.display_name,
        api_key=row.api_key,
        api_base=row.api_base,
        enabled=row.enabled,
        default_model=row.default_model,
        max_tokens=row.max_tokens,
        temperature=row.temperature,
        cost_per_1k_tokens=Decimal(str(row.cost_per_1k_tokens)),
    )


def _model_info(row: ModelRecord) -> ModelInfo:
    return ModelInfo(
        provider=row.provider,
        model_id=row.model_id,
        name=row.name,
        is_active=row.is_active,
        last_checked=as_utc(row.last_checked),
        capabilities=CapabilityProfile(**row.capabilities) if row.capabilities else None,
    )


class ProviderRegistry:
    """Owns provider configuration, adapter instances and the model catalog.

    Args:
        db: Database
        settings: Provider settings from configuration, in preference order
        config: Catalog refresh settings
        clock: Returns the current time
        transport: Optional httpx transport handed to every adapter
    """

    def __init__(
        self,
        db: Database,
        settings: dict[str, ProviderSettings],
        config: Optional[CatalogConfig] = None,
        clock: Callable[[], datetime] = utcnow,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.settings = settings
        self.config = config or CatalogConfig()
        self._clock = clock
        self._transport = transport
        self._snapshot: dict[str, ProviderInfo] = {}
        self._adapters: dict[str, BaseProvider] = {}
        self._refresh_locks: dict[str, asyncio.Lock] = {}
        self._write_lock = asyncio.Lock()

    def now(self) -> datetime:
        return as_utc(self._clock())

    # ------------------------------------------------------------------
    # Provider configuration
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Seed missing provider rows from settings and build the snapshot."""
        async with self.db.session() as session:
            result = await session.execute(select(ProviderConfig))
            rows = {row.name: row for row in result.scalars().all()}

            for name, provider in self.settings.items():
                row = rows.get(name)
                if row is None:
                    row = ProviderConfig(
                        name=name,
                        display_name=provider.display_name or name,
                        api_key=provider.api_key,
                        api_base=provider.api_base,
                        enabled=provider.enabled,
                        default_model=provider.default_model,
                        max_tokens=provider.max_tokens,
                        temperature=provider.temperature,
                        cost_per_1k_tokens=Decimal(provider.cost_per_1k_tokens),
                    )
                    session.add(row)
                    rows[name] = row
                    logger.info(f"Seeded provider configuration for {name}")
                elif not row.api_key and provider.api_key:
                    row.api_key = provider.api_key

        order = list(self.settings) + sorted(name for name in rows if name not in self.settings)
        self._snapshot = {name: _provider_info(rows[name]) for name in order}

        for info in self._snapshot.values():
            logger.info(
                "%s API = %s (%s)",
                info.name.upper(),
                mask_secret(info.api_key),
                "enabled" if info.enabled else "disabled",
            )

    def get(self, provider: str) -> Optional[ProviderInfo]:
        return self._snapshot.get(provider)

    def providers(self) -> list[ProviderInfo]:
        """All known providers, configuration order first."""
        return list(self._snapshot.values())

    def available_providers(self) -> list[str]:
        """Names of providers that are enabled and have a credential."""
        return [info.name for info in self._snapshot.values() if self.is_usable(info.name)]

    def is_usable(self, provider: str) -> bool:
        info = self._snapshot.get(provider)
        if info is None or not info.is_usable:
            return False
        return provider in self._adapters or AdapterRegistry.get_by_type(provider) is not None

    def adapter(self, provider: str) -> BaseProvider:
        """Adapter instance for a provider.

        Raises:
            ConfigurationError: If the provider is unknown or has no adapter
        """
        adapter = self._adapters.get(provider)
        if adapter is not None:
            return adapter

        info = self._snapshot.get(provider)
        adapter_class = AdapterRegistry.get_by_type(provider)
        if info is None or adapter_class is None:
            raise ConfigurationError(f"Unknown provider: {provider}", provider=provider)

        adapter = adapter_class(api_base=info.api_base, transport=self._transport)
        self._adapters[provider] = adapter
        return adapter

    def register_adapter(self, provider: str, adapter: BaseProvider) -> None:
        """Use a specific adapter instance for a provider."""
        self._adapters[provider] = adapter

    async def _update(self, provider: str, **values) -> ProviderInfo:
        async with self._write_lock:
            async with self.db.session() as session:
                result = await session.execute(
                    select(ProviderConfig).where(ProviderConfig.name == provider)
                )
                row = result.scalar_one_or_none()
                if row is None:
                    raise ConfigurationError(f"Unknown provider: {provider}", provider=provider)
                for key, value in values.items():
                    setattr(row, key, value)
                await session.flush()
                info = _provider_info(row)

            snapshot = dict(self._snapshot)
            snapshot[provider] = info
            self._snapshot = snapshot
            if "api_base" in values:
                self._adapters.pop(provider, None)
            return info

    async def set_enabled(self, provider: str, enabled: bool) -> ProviderInfo:
        info = await self._update(provider, enabled=enabled)
        logger.info(f"Provider {provider} {'enabled' if enabled else 'disabled'}")
        return info

    async def set_credential(self, provider: str, api_key: Optional[str]) -> ProviderInfo:
        info = await self._update(provider, api_key=api_key or None)
        logger.info(f"Updated credential for {provider}: {mask_secret(api_key)}")
        return info

    async def set_default_model(self, provider: str, model_id: str) -> ProviderInfo:
        return await self._update(provider, default_model=model_id)

    # ------------------------------------------------------------------
    # Model catalog
    # ------------------------------------------------------------------

    async def list_models(self, provider: str) -> list[ModelInfo]:
        """Active models for a provider, ordered by name."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ModelRecord)
                .where(ModelRecord.provider == provider, ModelRecord.is_active.is_(True))
                .order_by(ModelRecord.name, ModelRecord.model_id)
            )
            return [_model_info(row) for row in result.scalars().all()]

    async def get_model(self, provider: str, model_id: str) -> Optional[ModelInfo]:
        async with self.db.session() as session:
            result = await session.execute(
                select(ModelRecord).where(
                    ModelRecord.provider == provider,
                    ModelRecord.model_id == model_id,
                )
            )
            row = result.scalar_one_or_none()
            return _model_info(row) if row else None

    async def should_refresh(self, provider: str) -> bool:
        """Whether the provider's catalog is missing or older than the refresh interval."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ModelRecord.last_checked)
                .where(ModelRecord.provider == provider, ModelRecord.is_active.is_(True))
                .order_by(ModelRecord.last_checked)
                .limit(1)
            )
            oldest = result.scalar_one_or_none()

        if oldest is None:
            return True
        age = self.now() - as_utc(oldest)
        return age > timedelta(hours=self.config.refresh_interval_hours)

    async def _discover(self, provider: str) -> list[CatalogEntry]:
        info = self.get(provider)
        adapter = self.adapter(provider)
        if info is not None and info.has_credential:
            try:
                entries = await adapter.list_models(api_key=info.api_key)
                if entries:
                    return entries
                logger.warning(f"{provider} returned an empty model list, using static list")
            except NotImplementedError:
                logger.debug(f"{provider} does not support model listing, using static list")
            except AIGeekError as e:
                logger.warning(f"Model discovery failed for {provider}: {e}")
        return adapter.get_static_models()

    async def refresh_catalog(self, provider: str, force: bool = False) -> list[ModelInfo]:
        """Refresh a provider's model catalog when due (or forced).

        Listed models are upserted with known or inferred capabilities;
        models missing from the listing and unseen for longer than the
        stale window are deactivated.

        Args:
            provider: Provider name
            force: Refresh even if the catalog is fresh

        Returns:
            Active models after the refresh
        """
        if self.get(provider) is None:
            raise ConfigurationError(f"Unknown provider: {provider}", provider=provider)

        lock = self._refresh_locks.setdefault(provider, asyncio.Lock())
        async with lock:
            if not force and not await self.should_refresh(provider):
                return await self.list_models(provider)

            entries = await self._discover(provider)
            now = self.now()
            stale_before = now - timedelta(hours=self.config.stale_model_hours)
            listed = {entry.id: entry for entry in entries}

            async with self.db.session() as session:
                result = await session.execute(
                    select(ModelRecord).where(ModelRecord.provider == provider)
                )
                existing = {row.model_id: row for row in result.scalars().all()}

                for model_id, entry in listed.items():
                    capabilities = resolve_capabilities(provider, model_id).model_dump(mode="json")
                    row = existing.get(model_id)
                    if row is None:
                        session.add(ModelRecord(
                            provider=provider,
                            model_id=model_id,
                            name=entry.display_name or model_id,
                            is_active=True,
                            last_checked=now,
                            capabilities=capabilities,
                        ))
                    else:
                        row.name = entry.display_name or row.name
                        row.is_active = True
                        row.last_checked = now
                        row.capabilities = capabilities

                deactivated = 0
                for model_id, row in existing.items():
                    if model_id in listed or not row.is_active:
                        continue
                    if as_utc(row.last_checked) < stale_before:
                        row.is_active = False
                        deactivated += 1

            logger.info(
                f"Refreshed {provider} catalog: {len(listed)} listed, {deactivated} deactivated"
            )
            return await self.list_models(provider)

    async def ensure_model(self, provider: str, model_id: str) -> ModelInfo:
        """Return the catalog entry for a model, creating it if unseen."""
        existing = await self.get_model(provider, model_id)
        if existing is not None:
            return existing

        try:
            async with self.db.session() as session:
                row = ModelRecord(
                    provider=provider,
                    model_id=model_id,
                    name=model_id,
                    is_active=True,
                    last_checked=self.now(),
                    capabilities=resolve_capabilities(provider, model_id).model_dump(mode="json"),
                )
                session.add(row)
                await session.flush()
                info = _model_info(row)
        except IntegrityError:
            # Created concurrently
            info = await self.get_model(provider, model_id)
            if info is None:
                raise
            return info

        logger.info(f"Added model {provider}/{model_id} to catalog")
        return info

    async def update_all_model_capabilities(self) -> int:
        """Re-apply known or inferred capabilities to every active model.

        Returns:
            Number of models updated
        """
        updated = 0
        async with self.db.session() as session:
            result = await session.execute(
                select(ModelRecord).where(ModelRecord.is_active.is_(True))
            )
            for row in result.scalars().all():
                row.capabilities = resolve_capabilities(row.provider, row.model_id).model_dump(mode="json")
                updated += 1

        logger.info(f"Updated capabilities for {updated} models")
        return updated
