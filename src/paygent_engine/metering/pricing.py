"""Token cost arithmetic.

Catalog rates are integer cents per one million tokens. Each side of a
usage row is rounded half-up to whole cents independently, so one cent is
the minimum billable granularity per ledger row and fractional cents are
never carried into later rows.
"""

from dataclasses import dataclass
from decimal import Decimal

from paygent_engine.common.currency import round_half_up

TOKENS_PER_RATE_UNIT = 1_000_000


@dataclass(frozen=True)
class TokenCost:
    input_cost: int
    output_cost: int

    @property
    def total_cost(self) -> int:
        return self.input_cost + self.output_cost


def cost_for_tokens(tokens: int, rate_cents_per_1m: int) -> int:
    """
    Price a token count at a per-million rate, in whole cents.

    1000 tokens at 300c/1M -> 0.3c -> 0
    500 tokens at 1500c/1M -> 0.75c -> 1
    """
    if tokens < 0:
        raise ValueError("token count must be non-negative")
    if rate_cents_per_1m < 0:
        raise ValueError("rate must be non-negative")
    exact = Decimal(tokens) * Decimal(rate_cents_per_1m) / Decimal(TOKENS_PER_RATE_UNIT)
    return round_half_up(exact)


def price_tokens(
    input_tokens: int,
    output_tokens: int,
    input_rate_cents_per_1m: int,
    output_rate_cents_per_1m: int,
) -> TokenCost:
    return TokenCost(
        input_cost=cost_for_tokens(input_tokens, input_rate_cents_per_1m),
        output_cost=cost_for_tokens(output_tokens, output_rate_cents_per_1m),
    )
