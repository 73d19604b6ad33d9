"""Conversions between dollars and integer cents.

All money is stored as integer cents; these helpers are the only place a
float or Decimal dollar amount is turned into cents.
"""

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def dollars_to_cents(dollars: float | str | Decimal) -> int:
    """1.505 -> 151. Strings are parsed exactly; floats via their repr."""
    return round_half_up(Decimal(str(dollars)) * 100)


def cents_to_dollars(cents: int) -> Decimal:
    return Decimal(cents) / 100


def format_cents(cents: int) -> str:
    """Render cents as a USD string, e.g. 123456 -> '$1,234.56'."""
    sign = "-" if cents < 0 else ""
    return f"{sign}${cents_to_dollars(abs(cents)):,.2f}"
