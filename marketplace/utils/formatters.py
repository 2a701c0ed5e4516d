"""
JSON formatting helpers used by model to_dict() methods.
Decimals are rendered as strings with two places to keep money exact.
"""
from decimal import Decimal, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional


def fmt_id(value) -> Optional[str]:
    """UUID (or None) as a string."""
    return str(value) if value is not None else None


def fmt_money(value: Union[int, float, Decimal, str, None]) -> Optional[str]:
    """
    Format a monetary amount with exactly two decimals.
    
    Examples:
        fmt_money(Decimal('25.9')) -> "25.90"
        fmt_money(None) -> None
    """
    if value is None:
        return None
    return str(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def fmt_dt(value: Union[date, datetime, None]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()
