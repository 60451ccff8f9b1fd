"""Database module for aigeek.

This module provides database models, session management, and seed
data for provider configuration, model catalog, pricing, free tiers
and usage accounting.
"""

from aigeek.db.base import Base, TimestampMixin, UUIDMixin, as_utc, utcnow
from aigeek.db.models import (
    FreeTierRecord,
    ModelRecord,
    PricingRecord,
    ProviderConfig,
    UsageRecord,
)
from aigeek.db.session import (
    AsyncSession,
    Database,
    get_database_url,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "as_utc",
    "utcnow",
    # Models
    "FreeTierRecord",
    "ModelRecord",
    "PricingRecord",
    "ProviderConfig",
    "UsageRecord",
    # Session
    "AsyncSession",
    "Database",
    "get_database_url",
]
