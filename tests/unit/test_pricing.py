"""Tests for token cost arithmetic and currency helpers."""

from decimal import Decimal

import pytest

from paygent_engine.common.currency import (
    cents_to_dollars,
    dollars_to_cents,
    format_cents,
    round_half_up,
)
from paygent_engine.metering.pricing import TokenCost, cost_for_tokens, price_tokens


class TestCostForTokens:
    def test_rounds_down_below_half_cent(self):
        # 1000 tokens at 300c per 1M = 0.3c
        assert cost_for_tokens(1000, 300) == 0

    def test_rounds_up_above_half_cent(self):
        # 500 tokens at 1500c per 1M = 0.75c
        assert cost_for_tokens(500, 1500) == 1

    def test_exact_half_rounds_up(self):
        assert cost_for_tokens(500, 1000) == 1
        assert cost_for_tokens(1500, 1000) == 2

    def test_whole_million(self):
        assert cost_for_tokens(1_000_000, 300) == 300
        assert cost_for_tokens(2_500_000, 1500) == 3750

    def test_zero_tokens(self):
        assert cost_for_tokens(0, 1500) == 0

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValueError):
            cost_for_tokens(-1, 300)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            cost_for_tokens(10, -300)

    def test_large_counts_stay_exact(self):
        assert cost_for_tokens(10**12, 1) == 1_000_000


class TestPriceTokens:
    def test_gpt4o_small_request(self):
        cost = price_tokens(1000, 500, 300, 1500)
        assert cost == TokenCost(input_cost=0, output_cost=1)
        assert cost.total_cost == 1

    def test_each_side_rounded_independently(self):
        # 0.4c + 0.4c would be 0.8c combined, but each side rounds to 0
        cost = price_tokens(400, 400, 1000, 1000)
        assert cost.input_cost == 0
        assert cost.output_cost == 0
        assert cost.total_cost == 0


class TestCurrency:
    def test_round_half_up(self):
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.4999")) == 2
        assert round_half_up(Decimal("-2.5")) == -3

    def test_dollars_to_cents(self):
        assert dollars_to_cents("3.00") == 300
        assert dollars_to_cents("0.15") == 15
        assert dollars_to_cents("1.505") == 151
        assert dollars_to_cents(19.99) == 1999

    def test_cents_to_dollars(self):
        assert cents_to_dollars(1999) == Decimal("19.99")

    def test_format_cents(self):
        assert format_cents(123456) == "$1,234.56"
        assert format_cents(5) == "$0.05"
        assert format_cents(-250) == "-$2.50"
