"""Cost arithmetic for metered calls and estimates."""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

COST_QUANTUM = Decimal("0.000000000001")
TOKENS_PER_UNIT = Decimal(1000)


def quantize_cost(value: Decimal) -> Decimal:
    return value.quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)


def metered_cost(total_tokens: int, cost_per_1k_tokens: Decimal) -> Decimal:
    """Cost of ``total_tokens`` at a flat per-1k-token rate.

    Example: 500 tokens at 0.003 per 1k tokens costs 0.0015.
    """
    return quantize_cost(Decimal(total_tokens) / TOKENS_PER_UNIT * cost_per_1k_tokens)


def estimate_prompt_tokens(prompt: Optional[str]) -> int:
    """Rough token count of a prompt: one token per four characters, rounded up."""
    return math.ceil(len(prompt or "") / 4)


def estimate_cost(
    input_tokens: int,
    output_tokens: int,
    input_price: Decimal,
    output_price: Decimal,
) -> Decimal:
    """Estimated cost with separate per-1k input and output prices."""
    return quantize_cost(
        Decimal(input_tokens) / TOKENS_PER_UNIT * input_price
        + Decimal(output_tokens) / TOKENS_PER_UNIT * output_price
    )
