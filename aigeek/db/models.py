"""Database models for the orchestration engine.

This module defines the SQLAlchemy models backing provider routing and
usage governance:
- ProviderConfig: credentials and call defaults per upstream provider
- ModelRecord: catalog of models discovered per provider, with capabilities
- PricingRecord: per-1k-token input/output prices per model
- FreeTierRecord: free-tier flag and limit set per model
- UsageRecord: daily/minute/hour usage counters per (provider, model, caller, day)
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from aigeek.db.base import Base, TimestampMixin, UUIDMixin, utcnow


class ProviderConfig(Base, UUIDMixin, TimestampMixin):
    """Provider configuration for LLM endpoints.

    Seeded from configuration at initialization and mutated only through
    the provider registry.
    """

    __tablename__ = "provider_configs"

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        comment="Provider name (anthropic, groq, gemini, together, openai)",
    )
    display_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Human readable provider/model label",
    )
    api_key: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="API credential",
    )
    api_base: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Base endpoint URL",
    )
    enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Whether this provider may be routed to",
    )
    default_model: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Model used when a call names none",
    )
    max_tokens: Mapped[int] = mapped_column(
        Integer,
        default=1000,
        nullable=False,
        comment="Default max output tokens",
    )
    temperature: Mapped[float] = mapped_column(
        Float,
        default=0.7,
        nullable=False,
        comment="Default sampling temperature",
    )
    cost_per_1k_tokens: Mapped[Decimal] = mapped_column(
        Numeric(20, 12),
        default=Decimal("0"),
        nullable=False,
        comment="Metered cost per 1000 tokens (input + output)",
    )

    def __repr__(self) -> str:
        return f"<ProviderConfig(id={self.id}, name={self.name}, enabled={self.enabled})>"


class ModelRecord(Base, UUIDMixin, TimestampMixin):
    """A model offered by a provider, with its capability profile."""

    __tablename__ = "ai_models"
    __table_args__ = (
        UniqueConstraint("provider", "model_id", name="uq_ai_model_provider_model"),
    )

    provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Provider name",
    )
    model_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Provider-scoped model identifier",
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="False once the model disappears from the provider listing",
    )
    last_checked: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Last time the model was seen in a catalog listing",
    )
    capabilities: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Serialized CapabilityProfile",
    )

    def __repr__(self) -> str:
        return f"<ModelRecord(provider={self.provider}, model_id={self.model_id}, active={self.is_active})>"


class PricingRecord(Base, UUIDMixin, TimestampMixin):
    """Input/output price per 1000 tokens for one model."""

    __tablename__ = "ai_pricing"
    __table_args__ = (
        UniqueConstraint("provider", "model_id", name="uq_ai_pricing_provider_model"),
    )

    provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Provider name",
    )
    model_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Provider-scoped model identifier",
    )
    input_price: Mapped[Decimal] = mapped_column(
        Numeric(20, 12),
        nullable=False,
        default=Decimal("0"),
        comment="Price per 1000 input tokens",
    )
    output_price: Mapped[Decimal] = mapped_column(
        Numeric(20, 12),
        nullable=False,
        default=Decimal("0"),
        comment="Price per 1000 output tokens",
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
        comment="Currency code",
    )
    unit: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="per_1k_tokens",
        comment="Pricing unit",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Whether this price is in effect",
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Last time the price was written",
    )

    def __repr__(self) -> str:
        return (
            f"<PricingRecord(provider={self.provider}, model_id={self.model_id}, "
            f"input={self.input_price}, output={self.output_price})>"
        )


class FreeTierRecord(Base, UUIDMixin, TimestampMixin):
    """Free-tier allowance for one model.

    A model with no row here is always metered.
    """

    __tablename__ = "ai_free_tiers"
    __table_args__ = (
        UniqueConstraint("provider", "model_id", name="uq_ai_free_tier_provider_model"),
    )

    provider: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    model_id: Mapped[str] = mapped_column(String(255), nullable=False)
    is_free: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Whether calls within the limits are free",
    )
    limits: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="LimitSet: requests/tokens per minute and day, audio seconds per hour and day",
    )
    notes: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<FreeTierRecord(provider={self.provider}, model_id={self.model_id}, free={self.is_free})>"


class UsageRecord(Base, UUIDMixin, TimestampMixin):
    """Usage counters for one (provider, model, caller, day).

    Window markers record which minute, hour and day the counters belong
    to; counters are zeroed when the wall clock has moved past a marker.
    """

    __tablename__ = "ai_usage"
    __table_args__ = (
        UniqueConstraint(
            "provider", "model_id", "caller_id", "day",
            name="uq_ai_usage_provider_model_caller_day",
        ),
    )

    provider: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    model_id: Mapped[str] = mapped_column(String(255), nullable=False)
    caller_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Opaque caller identifier ('session' for the process itself)",
    )
    day: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="UTC calendar day the record belongs to",
    )

    # Minute window
    minute_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minute_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minute_audio_seconds: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    minute_window_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Start of the minute the minute counters belong to",
    )

    # Hour window
    hour_audio_seconds: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    hour_window_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Start of the hour the hour counters belong to",
    )

    # Day window
    day_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    day_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    day_audio_seconds: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    day_window_date: Mapped[date] = mapped_column(Date, nullable=False)

    limits: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="LimitSet copied from the free tier when the record was created",
    )
    percentages: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    near_limit: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    at_limit: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<UsageRecord(provider={self.provider}, model_id={self.model_id}, "
            f"caller_id={self.caller_id}, day={self.day})>"
        )
