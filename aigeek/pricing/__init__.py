"""Pricing and cost calculation."""

from .calculator import estimate_cost, estimate_prompt_tokens, metered_cost
from .manager import PricingManager, builtin_price
from .models import CostEstimate, FreeTierInfo, ModelPrice

__all__ = [
    "CostEstimate",
    "FreeTierInfo",
    "ModelPrice",
    "PricingManager",
    "builtin_price",
    "estimate_cost",
    "estimate_prompt_tokens",
    "metered_cost",
]
