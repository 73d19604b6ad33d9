"""Paygent-Engine: usage-based billing and metering for AI agents."""

from paygent_engine.client import MeteringClient
from paygent_engine.common.currency import cents_to_dollars, dollars_to_cents, format_cents
from paygent_engine.metering.pricing import TokenCost, price_tokens
from paygent_engine.fees.schedule import next_billing_date

__all__ = [
    "MeteringClient",
    "cents_to_dollars",
    "dollars_to_cents",
    "format_cents",
    "TokenCost",
    "price_tokens",
    "next_billing_date",
]
__version__ = "0.1.0"
