"""Tests for cost arithmetic."""

from decimal import Decimal

import pytest

from aigeek.pricing import estimate_cost, estimate_prompt_tokens, metered_cost
from aigeek.pricing.models import CostEstimate, ModelPrice


class TestMeteredCost:
    """Test flat per-1k metered cost."""

    def test_metered_cost(self):
        """100 input + 400 output tokens at 0.003 per 1k costs 0.0015."""
        assert metered_cost(500, Decimal("0.003")) == Decimal("0.0015")

    def test_zero_tokens(self):
        assert metered_cost(0, Decimal("0.003")) == Decimal("0")

    def test_returns_decimal(self):
        assert isinstance(metered_cost(1234, Decimal("0.00027")), Decimal)
        assert metered_cost(1234, Decimal("0.00027")) == Decimal("0.00033318")


class TestEstimates:
    """Test prompt token estimation and estimated cost."""

    @pytest.mark.parametrize(
        "prompt,expected",
        [
            ("", 0),
            (None, 0),
            ("abc", 1),
            ("abcd", 1),
            ("abcde", 2),
            ("x" * 400, 100),
        ],
    )
    def test_estimate_prompt_tokens(self, prompt, expected):
        assert estimate_prompt_tokens(prompt) == expected

    def test_estimate_cost(self):
        cost = estimate_cost(100, 1000, Decimal("0.00027"), Decimal("0.00027"))

        assert cost == Decimal("0.000297")

    def test_estimate_cost_separate_prices(self):
        cost = estimate_cost(1000, 1000, Decimal("0.003"), Decimal("0.015"))

        assert cost == Decimal("0.018")


class TestPricingModels:
    """Test pricing dataclasses."""

    def test_combined_price(self):
        price = ModelPrice("gemini", "gemini-pro", Decimal("0.0005"), Decimal("0.0015"))

        assert price.combined_price == Decimal("0.0020")
        assert price.to_dict() == {
            "input": "0.0005",
            "output": "0.0015",
            "currency": "USD",
            "unit": "per_1k_tokens",
        }

    def test_unpriced_estimate(self):
        estimate = CostEstimate(
            provider="groq",
            model_id="new-model",
            model_name="new-model",
            estimated_input_tokens=10,
            estimated_output_tokens=100,
        )

        assert estimate.is_priced is False
        assert estimate.to_dict()["estimated_cost"] is None
