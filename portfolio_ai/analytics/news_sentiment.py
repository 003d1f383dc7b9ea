"""Keyword-based headline sentiment."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..domain.models import NewsArticle, NewsFeed

POSITIVE_KEYWORDS = (
    "up", "surge", "gain", "rise", "bull", "growth",
    "profit", "beat", "success", "strong", "high", "positive",
)
NEGATIVE_KEYWORDS = (
    "down", "fall", "drop", "decline", "bear", "loss",
    "miss", "weak", "low", "negative", "crash", "concern",
)
TOP_HEADLINES = 5


@dataclass
class NewsSentiment:
    overall: str = "neutral"
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    total_articles: int = 0
    recent_headlines: List[NewsArticle] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "positiveCount": self.positive_count,
            "negativeCount": self.negative_count,
            "neutralCount": self.neutral_count,
            "totalArticles": self.total_articles,
            "recentHeadlines": [
                {
                    "headline": article.headline,
                    "source": article.source,
                    "url": article.url,
                    "publishedAt": article.published_at.isoformat() if article.published_at else None,
                }
                for article in self.recent_headlines
            ],
        }


def classify_article(article: NewsArticle) -> str:
    """'positive', 'negative' or 'neutral' by substring keyword match."""
    text = f"{article.headline} {article.summary or ''}".lower()
    has_positive = any(keyword in text for keyword in POSITIVE_KEYWORDS)
    has_negative = any(keyword in text for keyword in NEGATIVE_KEYWORDS)

    if has_positive and not has_negative:
        return "positive"
    if has_negative and not has_positive:
        return "negative"
    return "neutral"


def analyze_news_sentiment(feed: Optional[NewsFeed]) -> NewsSentiment:
    if feed is None or not feed.articles:
        return NewsSentiment()

    counts = {"positive": 0, "negative": 0, "neutral": 0}
    for article in feed.articles:
        counts[classify_article(article)] += 1

    overall = "neutral"
    if counts["positive"] > counts["negative"] * 1.5:
        overall = "positive"
    elif counts["negative"] > counts["positive"] * 1.5:
        overall = "negative"

    return NewsSentiment(
        overall=overall,
        positive_count=counts["positive"],
        negative_count=counts["negative"],
        neutral_count=counts["neutral"],
        total_articles=len(feed.articles),
        recent_headlines=list(feed.articles[:TOP_HEADLINES]),
    )
