"""Domain layer - models and symbol handling."""

from .models import (
    Bar,
    CapabilityKind,
    CapabilityRequest,
    CapabilityResult,
    FearGreedReading,
    FilingPeriod,
    Fundamentals,
    HistoricalBars,
    Holding,
    NewsArticle,
    NewsFeed,
    Provenance,
    Snapshot,
)

__all__ = [
    "Bar",
    "CapabilityKind",
    "CapabilityRequest",
    "CapabilityResult",
    "FearGreedReading",
    "FilingPeriod",
    "Fundamentals",
    "HistoricalBars",
    "Holding",
    "NewsArticle",
    "NewsFeed",
    "Provenance",
    "Snapshot",
]
