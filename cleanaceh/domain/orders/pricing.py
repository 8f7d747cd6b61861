"""Order price validation. Pure arithmetic over integer minor units, no I/O."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from ...errors import PriceMismatch

TAX_RATE = Decimal("0.11")  # PPN
PRICE_TOLERANCE = 100


def round_half_up(value: Union[Decimal, int, str]) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PriceQuote:
    ok: bool
    computed_tax: int
    computed_total: int


def compute_quote(
    base_price: int,
    additional_services_price: int,
    platform_fee: int,
    claimed_tax: Optional[int],
    claimed_total: int,
) -> PriceQuote:
    """Recompute tax and total, and compare against the client's claimed total"""
    subtotal = Decimal(base_price) + Decimal(additional_services_price)
    if claimed_tax is None:
        computed_tax = round_half_up(subtotal * TAX_RATE)
    else:
        computed_tax = int(claimed_tax)
    computed_total = int(subtotal) + int(platform_fee) + computed_tax
    ok = abs(int(claimed_total) - computed_total) <= PRICE_TOLERANCE
    return PriceQuote(ok=ok, computed_tax=computed_tax, computed_total=computed_total)


def validate_total(
    base_price: int,
    additional_services_price: int,
    platform_fee: int,
    claimed_tax: Optional[int],
    claimed_total: int,
) -> PriceQuote:
    """
    Same as compute_quote, but rejects totals outside the rounding tolerance.

    Raises:
        PriceMismatch: claimed total differs from the computed total by more than 100
    """
    quote = compute_quote(base_price, additional_services_price, platform_fee, claimed_tax, claimed_total)
    if not quote.ok:
        raise PriceMismatch(
            f"Total price does not match the computed total of {quote.computed_total}"
        )
    return quote
