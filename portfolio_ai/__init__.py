"""Portfolio data aggregation with provider fallback and streaming AI analysis."""

__version__ = "0.1.0"
