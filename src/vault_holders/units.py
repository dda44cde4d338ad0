from __future__ import annotations

from decimal import Decimal, localcontext


def to_decimal(raw: int, decimals: int) -> Decimal:
    """Express a raw integer token amount in whole-token units.

    Args:
        raw: Integer amount in the token's smallest unit.
        decimals: Decimal precision of the token.

    Returns:
        ``raw / 10**decimals`` as an exact Decimal.

    Notes:
        - Only meant for presentation; balance math stays in integers.
        - Negative ``decimals`` is rejected.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    # String construction is exact regardless of the context precision
    return Decimal(f"{raw}E-{decimals}")


def to_raw(value: Decimal, decimals: int) -> int:
    """Inverse of :func:`to_decimal`, truncating any precision beyond ``decimals``."""
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    with localcontext() as ctx:
        ctx.prec = max(28, len(value.as_tuple().digits) + decimals + 1)
        return int(value.scaleb(decimals))
