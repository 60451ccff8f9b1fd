"""Pricing data models for aigeek.

Prices are USD per 1000 tokens.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from aigeek.types import LimitSet


@dataclass(frozen=True)
class ModelPrice:
    """Input/output price per 1000 tokens for one model."""

    provider: str
    model_id: str
    input_price: Decimal = Decimal("0")
    output_price: Decimal = Decimal("0")
    currency: str = "USD"
    unit: str = "per_1k_tokens"

    @property
    def combined_price(self) -> Decimal:
        """Input plus output price, used for budget caps and cost ranking."""
        return self.input_price + self.output_price

    def to_dict(self) -> dict:
        return {
            "input": str(self.input_price),
            "output": str(self.output_price),
            "currency": self.currency,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class FreeTierInfo:
    """Free-tier allowance for one model."""

    provider: str
    model_id: str
    is_free: bool = False
    limits: LimitSet = field(default_factory=LimitSet)
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "is_free": self.is_free,
            "limits": self.limits.model_dump(),
            "notes": self.notes,
        }


@dataclass
class CostEstimate:
    """Estimated cost of one prompt against one model."""

    provider: str
    model_id: str
    model_name: str
    estimated_input_tokens: int
    estimated_output_tokens: int
    input_price: Optional[Decimal] = None
    output_price: Optional[Decimal] = None
    estimated_cost: Optional[Decimal] = None
    is_free: bool = False

    @property
    def is_priced(self) -> bool:
        return self.estimated_cost is not None

    def to_dict(self) -> dict:
        """Convert CostEstimate to dictionary."""
        return {
            "provider": self.provider,
            "model": self.model_id,
            "model_name": self.model_name,
            "estimated_input_tokens": self.estimated_input_tokens,
            "estimated_output_tokens": self.estimated_output_tokens,
            "input_price": str(self.input_price) if self.input_price is not None else None,
            "output_price": str(self.output_price) if self.output_price is not None else None,
            "estimated_cost": str(self.estimated_cost) if self.estimated_cost is not None else None,
            "is_free": self.is_free,
        }
