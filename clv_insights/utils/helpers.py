"""
Helper utilities
"""
import math
from typing import Any, Optional


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def to_amount(value: Any) -> float:
    """Coerce an upstream money amount (usually a decimal string) to a float; missing -> 0"""
    if value in (None, ""):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def format_currency(amount: float, currency: str = "USD") -> str:
    """Format amount as currency"""
    if amount is None or not math.isfinite(amount):
        return "-"
    symbols = {"USD": "$", "EUR": "€", "GBP": "£", "AUD": "A$", "CAD": "CA$", "NZD": "NZ$", "JPY": "¥"}
    currency = currency or "USD"
    symbol = symbols.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_number(value: Optional[float]) -> str:
    """Render a number the way it should appear in exports: integers without a trailing .0"""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_count(value: Any) -> int:
    """Coerce an upstream count (Shopify sends UnsignedInt64 as a string) to an int; missing -> 0"""
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
