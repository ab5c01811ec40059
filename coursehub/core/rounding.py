from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def round_half_up(value, places: int = 0) -> Decimal:
    """Round to ``places`` decimals with halves away from zero (4.25 -> 4.3)"""
    try:
        return Decimal(str(value)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"cannot round {value!r}")
