"""Centralized symbol normalization and provider-specific symbol forms."""

import logging
import re
from urllib.parse import quote

logger = logging.getLogger(__name__)

VALID_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.\-/:]{0,14}$")

CLASS_SUFFIX_SEPARATOR = "."
CRYPTO_PAIR_SEPARATORS = ("/", "-")
POLYGON_CRYPTO_PREFIX = "X:"


def normalize_symbol(symbol_str: str) -> str:
    """
    Normalize symbol input.
    - Strip whitespace
    - Convert to uppercase
    - Remove characters no provider accepts
    """
    if not symbol_str:
        return ""

    symbol = symbol_str.strip().upper()
    return re.sub(r"[^A-Z0-9.\-/:]", "", symbol)


def is_valid_symbol(symbol: str) -> bool:
    """Check if symbol matches valid pattern."""
    if not symbol:
        return False
    return bool(VALID_SYMBOL_PATTERN.match(symbol))


def is_crypto_symbol(symbol: str) -> bool:
    """Crypto pairs are written with a pair separator, e.g. BTC/USD or BTC-USD."""
    upper = symbol.upper()
    if upper.startswith(POLYGON_CRYPTO_PREFIX):
        return True
    return any(sep in upper for sep in CRYPTO_PAIR_SEPARATORS)


def has_class_suffix(symbol: str) -> bool:
    return CLASS_SUFFIX_SEPARATOR in symbol


def strip_class_suffix(symbol: str) -> str:
    """BRK.A -> BRKA"""
    return symbol.replace(CLASS_SUFFIX_SEPARATOR, "")


def crypto_pair(symbol: str) -> str:
    """Canonical slash form of a crypto pair (BTC-USD -> BTC/USD)."""
    upper = symbol.upper()
    if upper.startswith(POLYGON_CRYPTO_PREFIX):
        upper = upper[len(POLYGON_CRYPTO_PREFIX):]
        if "/" not in upper and "-" not in upper and len(upper) > 3:
            return f"{upper[:-3]}/{upper[-3:]}"
    return upper.replace("-", "/")


def polygon_symbol(symbol: str, is_crypto: bool) -> str:
    """Polygon wants crypto as X:BTCUSD with the separator removed."""
    upper = symbol.upper()
    if not is_crypto or upper.startswith(POLYGON_CRYPTO_PREFIX):
        return upper
    return POLYGON_CRYPTO_PREFIX + crypto_pair(upper).replace("/", "")


def alpaca_symbol(symbol: str, is_crypto: bool) -> str:
    """Alpaca wants crypto pairs with the slash URL-escaped (BTC%2FUSD)."""
    if not is_crypto:
        return symbol.upper()
    return quote(crypto_pair(symbol), safe="")


def yahoo_symbol(symbol: str, is_crypto: bool) -> str:
    """Yahoo quotes crypto as BTC-USD."""
    if not is_crypto:
        return symbol.upper()
    return crypto_pair(symbol).replace("/", "-")
