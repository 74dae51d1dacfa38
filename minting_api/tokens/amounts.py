"""Human-readable token amounts to base units (amount * 10^decimals), exact decimal arithmetic."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from minting_api.chain.instructions import U64_MAX
from minting_api.errors import InvalidParameter


def to_base_units(amount: int | float | str | Decimal, decimals: int) -> int:
    """
    Scale amount by 10^decimals.

    Raises:
        InvalidParameter: amount is not a finite positive number, has more
            fractional digits than decimals allows, or exceeds u64.
    """
    if isinstance(amount, bool):
        raise InvalidParameter("amount must be a number")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidParameter(f"amount must be a number, got {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise InvalidParameter("amount must be a positive number")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise InvalidParameter(f"amount {amount} has more than {decimals} decimal places")
    base_units = int(scaled)
    if base_units > U64_MAX:
        raise InvalidParameter(f"amount {amount} is too large for this mint")
    return base_units
