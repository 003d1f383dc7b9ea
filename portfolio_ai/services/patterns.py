"""Short price-pattern labels from the model chain, with a rule-based fallback."""

import asyncio
import logging
from typing import Sequence

from ..analytics.technical import HistoricalTrend
from ..llm.models import AnalysisPrompt
from ..llm.streaming import StreamingFallbackChain

logger = logging.getLogger(__name__)

PATTERN_WINDOW = 30
PATTERN_MAX_TOKENS = 50

PATTERN_SYSTEM_PROMPT = (
    "You are a financial analyst expert specializing in technical analysis of stock price "
    "patterns. Your task is to analyze the recent price movement described by the data and "
    "identify the dominant price pattern. Be concise, professional, and use proper technical "
    "terminology.\n\n"
    "Respond with a single, descriptive phrase that captures the main price pattern (e.g., "
    '"ascending triangle pattern", "consolidation after uptrend", "downtrend with decreasing '
    'volatility", etc.). Keep it under 10 words.'
)


def fallback_pattern(trend: str, volatility_percent: float, price_change_percent: float) -> str:
    """Rule-based pattern label used when no model answers in time."""
    if volatility_percent > 30:
        if "uptrend" in trend:
            return "high volatility uptrend"
        if "downtrend" in trend:
            return "high volatility downtrend"
        return "high volatility consolidation"
    if volatility_percent > 15:
        if abs(price_change_percent) < 2:
            return "moderate volatility consolidation"
        if price_change_percent > 0:
            return "steady uptrend"
        return "steady downtrend"
    return "low volatility sideways movement"


def build_pattern_prompt(symbol: str, closes: Sequence[float], trend: HistoricalTrend) -> AnalysisPrompt:
    recent = ", ".join(f"{price:.2f}" for price in list(closes)[-PATTERN_WINDOW:])
    user = (
        "Analyze the following price data and identify the dominant price pattern:\n\n"
        f"Symbol: {symbol}\n"
        f"Recent Price Change: {trend.price_change_percent:.2f}%\n"
        f"Volatility: {trend.volatility_percent:.2f}%\n"
        f"Trend: {trend.trend}\n\n"
        f"Recent price data (last {PATTERN_WINDOW} days, from oldest to newest):\n"
        f"{recent}\n\n"
        "Provide a concise description of the price pattern."
    )
    return AnalysisPrompt(system=PATTERN_SYSTEM_PROMPT, user=user)


class PatternClassifier:
    """Asks the model chain for a pattern phrase, bounded by a hard timeout."""

    def __init__(self, chain: StreamingFallbackChain, timeout_seconds: float = 2.0):
        self.chain = chain
        self.timeout_seconds = timeout_seconds

    async def classify(self, symbol: str, closes: Sequence[float], trend: HistoricalTrend) -> str:
        if trend.volatility_percent is None or trend.price_change_percent is None:
            return "unknown"

        prompt = build_pattern_prompt(symbol, closes, trend)
        try:
            completion = await asyncio.wait_for(
                self.chain.complete(prompt, max_tokens=PATTERN_MAX_TOKENS),
                timeout=self.timeout_seconds,
            )
            phrase = completion.text.strip().strip('"').strip()
            if phrase:
                return phrase
        except asyncio.TimeoutError:
            logger.warning("Pattern analysis for %s timed out after %.1fs, using fallback", symbol, self.timeout_seconds)
        except Exception as exc:
            logger.warning("Pattern analysis for %s failed, using fallback: %s", symbol, exc)

        return fallback_pattern(trend.trend, trend.volatility_percent, trend.price_change_percent)
