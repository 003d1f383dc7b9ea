"""Value formatters for prompt text (pure functions)."""

from datetime import datetime
from typing import Optional

NOT_AVAILABLE = "N/A"


def fmt_number(value: Optional[float], decimals: int = 2, prefix: str = "", suffix: str = "") -> str:
    """
    Format a number with fixed decimals, or N/A when missing.

    Args:
        value: Number to format (None renders as N/A)
        decimals: Digits after the decimal point
        prefix: Text placed before the number, e.g. "$"
        suffix: Text placed after the number, e.g. "%"

    Returns:
        Formatted string
    """
    if value is None:
        return NOT_AVAILABLE
    try:
        return f"{prefix}{float(value):.{decimals}f}{suffix}"
    except (TypeError, ValueError):
        return NOT_AVAILABLE


def fmt_money(value: Optional[float]) -> str:
    return fmt_number(value, prefix="$")


def fmt_percent(value: Optional[float], signed: bool = False) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:+.2f}%" if signed else fmt_number(value, suffix="%")


def fmt_volume(value: Optional[float]) -> str:
    """Thousands-separated integer volume."""
    if value is None:
        return NOT_AVAILABLE
    return f"{int(value):,}"


def fmt_date(value: Optional[datetime]) -> str:
    if value is None:
        return NOT_AVAILABLE
    return value.strftime("%Y-%m-%d")


def fmt_text(value: Optional[str]) -> str:
    return value if value else NOT_AVAILABLE


def truncate(text: str, max_chars: int, marker: str = "\n[... truncated ...]") -> str:
    """Cut ``text`` so the result including ``marker`` fits in ``max_chars``."""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    if max_chars <= len(marker):
        return text[:max_chars]
    return text[: max_chars - len(marker)] + marker
