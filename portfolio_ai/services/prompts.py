"""Serialization of analysis contexts into bounded model prompts."""

import json
from typing import List

from ..llm.models import AnalysisPrompt
from .aggregator import AnalysisContext, PortfolioAnalysisContext
from .formatters import (
    fmt_date,
    fmt_money,
    fmt_number,
    fmt_percent,
    fmt_text,
    fmt_volume,
    truncate,
)

MAX_HEADLINES = 5
MAX_FILINGS = 4
MAX_PORTFOLIO_FILINGS = 2
MAX_PROMPT_HOLDINGS = 10
DEFAULT_MAX_CHARS = 12000

STOCK_SYSTEM_PROMPT = """You are an expert financial analyst with deep knowledge of stock markets, technical analysis, and fundamental analysis.

Analyze the provided stock data comprehensively and structure your response with these sections:

## 📊 Executive Summary
Provide a concise overview of the stock's current situation (2-3 sentences).

## 📈 Technical Analysis
- Current price trends (short, medium, long-term)
- Key technical indicators (SMA, RSI, volume trends)
- Support and resistance levels
- Technical outlook

## 💼 Fundamental Analysis
- Company fundamentals and financial metrics
- Dividend information (if applicable)
- Valuation assessment
- Financial health

## 📰 News & Sentiment Analysis
- Recent news summary and key headlines
- Market sentiment interpretation
- How news may impact the stock

## 🌍 Market Context
- Current Fear & Greed Index interpretation
- Broader market conditions
- Sector trends (if relevant)

## ⚠️ Risk Assessment
- Key risks to consider
- Volatility analysis
- Risk/reward profile

## 🎯 Investment Recommendations
- Clear buy/hold/sell perspective with reasoning
- Price targets or entry/exit points
- Position sizing suggestions
- Time horizon considerations

Values marked N/A were unavailable from every data source; do not guess them.
Be specific, cite the data provided, and provide actionable insights. Use clear formatting with headers, bullet points, and emphasis."""

PORTFOLIO_SYSTEM_PROMPT = """You are an expert portfolio manager and financial advisor with deep expertise in portfolio construction, risk management, and investment strategy.
Analyze the provided portfolio comprehensively. You will receive portfolio-level metrics and detailed data for each individual stock. Integrate the individual stock analysis into your overall assessment of the portfolio's health, risks, and opportunities.
Structure your response with these sections:
## 📊 Portfolio Overview
Provide a high-level summary of the portfolio (2-3 sentences).
## 💼 Holdings Analysis
- **Overall:** Analyze the quality of the individual holdings based on the detailed data provided (technicals, fundamentals, sentiment).
- **Top Holdings:** Discuss the top holdings and their influence on the portfolio.
- **Performance:** Comment on individual stock performance (gain/loss) in the context of their fundamentals and market sentiment.
## 🎯 Diversification & Risk
- **Sector Allocation:** Assess the balance and concentration in different sectors.
- **Concentration Risk:** Evaluate the risk from over-concentration in the top holdings.
- **Individual Stock Risks:** Highlight key risks for specific stocks based on their detailed analysis.
## 📈 Performance & Recommendations
- **Overall Performance:** Summarize the portfolio's total performance.
- **Rebalancing:** Provide specific, actionable recommendations, referencing the detailed data provided.
- **Priority Actions:** List the most important actions the user should consider.
## 🌍 Market Context
- **Current Environment:** Use the Fear & Greed Index to describe the market mood.
- **Positioning:** How is the portfolio positioned for the current market conditions?
Be specific, data-driven, and provide actionable recommendations. Use clear formatting with headers, bullet points, and emphasis."""


def _technical_lines(context: AnalysisContext) -> List[str]:
    tech = context.technicals
    if tech is None:
        return ["Technical indicators not available"]

    changes = tech.price_changes
    trends = tech.trends
    return [
        f"- SMA 20: {fmt_money(tech.sma20)}",
        f"- SMA 50: {fmt_money(tech.sma50)}",
        f"- SMA 200: {fmt_money(tech.sma200)}",
        f"- RSI (14): {fmt_number(tech.rsi)}",
        f"- Volatility (Annualized): {fmt_percent(tech.volatility)}",
        f"- Volume vs Average: {fmt_percent(tech.volume_trend)}",
        (
            f"- Trends: Short-term {fmt_text(trends.get('shortTerm'))}, "
            f"Medium-term {fmt_text(trends.get('mediumTerm'))}, "
            f"Long-term {fmt_text(trends.get('longTerm'))}"
        ),
        (
            f"- Price Changes: 1D: {fmt_percent(changes.get('1Day'))}, "
            f"7D: {fmt_percent(changes.get('7Day'))}, "
            f"30D: {fmt_percent(changes.get('30Day'))}, "
            f"1Y: {fmt_percent(changes.get('1Year'))}"
        ),
    ]


def _trend_lines(context: AnalysisContext) -> List[str]:
    trend = context.trend
    if trend is None:
        return []
    return [
        f"- Historical Trend: {trend.trend}",
        f"- Volatility Level: {trend.volatility_level} ({fmt_percent(trend.volatility_percent)})",
        f"- Pattern: {fmt_text(trend.pattern)}",
    ]


def _fundamental_lines(context: AnalysisContext, max_filings: int) -> List[str]:
    fundamentals = context.view.fundamentals
    if fundamentals is None:
        return ["Financial metrics not available"]

    filings = fundamentals.filings[:max_filings]
    lines = [
        f"- Dividend Yield: {fmt_percent(fundamentals.dividend_yield)}",
        f"- Annual Dividend: {fmt_money(fundamentals.annual_dividend)}",
        f"- Recent Fundamentals: {len(filings)} periods available",
    ]
    for index, filing in enumerate(filings, 1):
        lines.append(f"  Period {index}: {json.dumps(filing.to_dict(), default=str)}")
    return lines


def _news_lines(context: AnalysisContext) -> List[str]:
    sentiment = context.sentiment
    lines = [
        f"- Total Articles: {sentiment.total_articles}",
        (
            f"- Sentiment: {sentiment.overall} (Positive: {sentiment.positive_count}, "
            f"Negative: {sentiment.negative_count}, Neutral: {sentiment.neutral_count})"
        ),
        "- Recent Headlines:",
    ]
    headlines = sentiment.recent_headlines[:MAX_HEADLINES]
    if not headlines:
        lines.append("  No recent headlines")
    for article in headlines:
        lines.append(f'  - "{article.headline}" ({fmt_text(article.source)}, {fmt_date(article.published_at)})')
    return lines


def _market_lines(context) -> List[str]:
    reading = context.fear_greed
    if reading is None:
        return [
            "- Fear & Greed Index: N/A (N/A)",
            f"- Interpretation: {context.fear_greed_interpretation}",
        ]

    lines = [
        f"- Fear & Greed Index: {fmt_number(reading.value, 0)} ({reading.value_text})",
        f"- Interpretation: {context.fear_greed_interpretation}",
    ]
    if reading.previous_close is not None:
        lines.append(f"- Previous Close: {fmt_number(reading.previous_close, 0)}")
    if reading.one_week_ago is not None:
        lines.append(f"- One Week Ago: {fmt_number(reading.one_week_ago, 0)}")
    if reading.one_month_ago is not None:
        lines.append(f"- One Month Ago: {fmt_number(reading.one_month_ago, 0)}")
    return lines


def build_stock_prompt(context: AnalysisContext, max_chars: int = DEFAULT_MAX_CHARS) -> AnalysisPrompt:
    """Stock analysis prompt; missing values are rendered as N/A."""
    view = context.view
    snapshot = view.snapshot
    bars = view.historical_bars

    lines = [
        "Analyze this stock comprehensively:",
        "",
        f"**Symbol:** {view.symbol}",
        f"**Name:** {snapshot.name if snapshot and snapshot.name else view.symbol}",
        f"**Exchange:** {fmt_text(snapshot.exchange if snapshot else None)}",
        f"**Type:** {fmt_text(snapshot.asset_type if snapshot else None)}",
        "",
        "**Current Price Data:**",
        f"- Current Price: {fmt_money(snapshot.price if snapshot else None)}",
        f"- Daily Change: {fmt_percent(snapshot.change_percent if snapshot else None)}",
        f"- Daily High: {fmt_money(snapshot.high if snapshot else None)}",
        f"- Daily Low: {fmt_money(snapshot.low if snapshot else None)}",
        f"- Volume: {fmt_volume(snapshot.volume if snapshot else None)}",
        f"- Previous Close: {fmt_money(snapshot.previous_close if snapshot else None)}",
        "",
        "**Technical Indicators:**",
        *_technical_lines(context),
        *_trend_lines(context),
        "",
        "**Financial Metrics:**",
        *_fundamental_lines(context, MAX_FILINGS),
        "",
        "**News & Sentiment:**",
        *_news_lines(context),
        "",
        "**Market Sentiment:**",
        *_market_lines(context),
        "",
        "**Data Quality:**",
        f"- Historical Data Points: {len(bars) if bars else 0}",
        f"- Data Source: {fmt_text(snapshot.provenance.source if snapshot else None)}",
        f"- Is Delayed: {'Yes' if snapshot and snapshot.provenance.is_delayed else 'No'}",
        "",
        "Provide comprehensive analysis with clear, actionable insights based on this data.",
    ]
    return AnalysisPrompt(system=STOCK_SYSTEM_PROMPT, user=truncate("\n".join(lines), max_chars))


def _holding_detail_lines(context: AnalysisContext) -> List[str]:
    lines = [f"### {context.view.symbol}"]
    lines.extend(_technical_lines(context))
    lines.extend(_trend_lines(context))
    lines.extend(_fundamental_lines(context, MAX_PORTFOLIO_FILINGS))
    sentiment = context.sentiment
    lines.append(
        f"- News Sentiment: {sentiment.overall} "
        f"(Positive: {sentiment.positive_count}, Negative: {sentiment.negative_count})"
    )
    for article in sentiment.recent_headlines[:MAX_HEADLINES]:
        lines.append(f'  - "{article.headline}" ({fmt_text(article.source)})')
    return lines


def build_portfolio_prompt(
    context: PortfolioAnalysisContext,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> AnalysisPrompt:
    """Portfolio analysis prompt covering at most the largest holdings."""
    metrics = context.view.metrics
    ranked = sorted(metrics.holdings, key=lambda row: row.current_value, reverse=True)
    shown = ranked[:MAX_PROMPT_HOLDINGS]

    holding_lines = [
        (
            f"- {row.symbol}: {fmt_percent(row.gain_loss_percent, signed=True)} | "
            f"{fmt_money(row.gain_loss)} | Current value: {fmt_money(row.current_value)} | "
            f"Total invested: {fmt_money(row.cost_basis)} | Weight: {fmt_percent(row.weight)} | "
            f"Sector: {row.sector}"
        )
        for row in shown
    ]
    if len(ranked) > len(shown):
        holding_lines.append(f"- ... and {len(ranked) - len(shown)} smaller holdings")

    allocation = ", ".join(
        f"{sector}: {fmt_percent(weight)}"
        for sector, weight in sorted(metrics.sector_allocation.items(), key=lambda item: -item[1])
    )

    lines = [
        "Analyze this investment portfolio comprehensively:",
        "**Portfolio Summary:**",
        f"- Total Holdings: {metrics.holdings_count}",
        f"- Total Value: {fmt_money(metrics.total_value)}",
        f"- Total Gain/Loss: {fmt_money(metrics.total_gain_loss)} ({fmt_percent(metrics.total_gain_loss_percent)})",
        f"- Total Investment: {fmt_money(metrics.total_cost)}",
        f"- Top 5 Concentration: {fmt_percent(metrics.top5_concentration)}",
        f"- Largest Holding: {fmt_text(metrics.top_holding)} ({fmt_percent(metrics.top_holding_weight)})",
        f"- Diversification Score: {fmt_number(metrics.diversification_score, 0)}/100",
        f"- Sector Allocation: {allocation or 'N/A'}",
        "",
        "**Holdings:**",
        *holding_lines,
        "",
        "**Market Context:**",
        *_market_lines(context),
        "",
        "**Individual Holdings Analysis:**",
    ]
    for detail in context.details[:MAX_PROMPT_HOLDINGS]:
        lines.extend(_holding_detail_lines(detail))
        lines.append("")

    if context.view.failed_symbols:
        lines.append(
            f"**Note:** Limited data available for: {', '.join(context.view.failed_symbols)}. "
            "Analysis based on available information only."
        )
        lines.append("")

    lines.append("Provide comprehensive portfolio analysis with clear, actionable recommendations.")
    return AnalysisPrompt(system=PORTFOLIO_SYSTEM_PROMPT, user=truncate("\n".join(lines), max_chars))
