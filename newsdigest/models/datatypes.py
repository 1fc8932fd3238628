"""Data structures for the article fetch → analyze → persist pipeline."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

MARKET = "Market"
FAILED_TITLE = "unable to fetch title"
FAILED_CONTENT = "unable to fetch content"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hostname_of(url: str) -> str:
    return urlparse(url).hostname or ""


@dataclass(frozen=True)
class StockIdentity:
    """Stock the article is analysed against. ``Market`` means generic/unknown."""
    symbol: str = MARKET
    name: str = MARKET

    @property
    def is_market(self) -> bool:
        return self.symbol == MARKET


class Sentiment(str, Enum):
    """Classified market impact of a news item."""
    GOOD = "Good"
    NEUTRAL = "Neutral"
    BAD = "Bad"
    UNKNOWN = "Unknown"

    @property
    def emoji(self) -> str:
        return _SENTIMENT_EMOJI[self]

    @property
    def label(self) -> str:
        """Select-option label used by document stores, e.g. ``"Good 😀"``."""
        return f"{self.value} {self.emoji}"


_SENTIMENT_EMOJI = {
    Sentiment.GOOD: "😀",
    Sentiment.BAD: "😞",
    Sentiment.NEUTRAL: "😐",
    Sentiment.UNKNOWN: "😐",
}


@dataclass(frozen=True)
class Article:
    """
    Normalized article extracted from a page. Never mutated after construction.

    ``title == FAILED_TITLE`` marks a fetch failure, not an empty article.
    """
    title: str
    url: str
    content: str
    publish_date: datetime
    source: str

    @classmethod
    def failed(cls, url: str) -> "Article":
        """The sentinel article returned when every fetch strategy failed."""
        return cls(
            title=FAILED_TITLE,
            url=url,
            content=FAILED_CONTENT,
            publish_date=utc_now(),
            source=hostname_of(url),
        )

    @property
    def is_failure(self) -> bool:
        return self.title == FAILED_TITLE or not self.title.strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "publishDate": self.publish_date.isoformat(),
            "content": self.content,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Summary + sentiment. Always fully populated."""
    summary: str
    sentiment: Sentiment

    def to_dict(self) -> Dict[str, str]:
        return {"summary": self.summary, "sentiment": self.sentiment.value}


@dataclass(frozen=True)
class PersistedRecord:
    """One row in the article store, keyed by ``url``."""
    url: str
    symbol: str
    company: str
    title: str
    publish_date: datetime
    generated_date: datetime
    sentiment: Sentiment
    summary: str


# ── PageFetcher result variant ────────────────────────────────────────────────

@dataclass(frozen=True)
class FetchSuccess:
    """Raw HTML plus the name of the strategy that produced it."""
    html: str
    strategy: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class FetchFailure:
    """Every strategy failed; ``reason`` joins their individual errors."""
    reason: str


FetchResult = Union[FetchSuccess, FetchFailure]


# ── Orchestrator outcome ──────────────────────────────────────────────────────

STATUS_ANALYZED = "analyzed"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"
STATUS_EXTRACTED = "extracted"

REASON_ARTICLE_EXISTS = "article_exists"
REASON_TITLE_NOT_FOUND = "title_not_found"


@dataclass
class AnalysisOutcome:
    """
    Result of analysing one URL: skipped, analyzed, or errored.

    ``analysis_error`` is set only when the Analyzer itself failed; other
    per-item failures in a batch (e.g. persistence) carry ``error`` alone.
    """
    url: str
    status: str
    reason: Optional[str] = None
    article: Optional[Article] = None
    analysis: Optional[AnalysisResult] = None
    error: Optional[str] = None
    analysis_error: bool = False

    @property
    def skipped(self) -> bool:
        return self.status == STATUS_SKIPPED

    @classmethod
    def skip(cls, url: str, reason: str, article: Optional[Article] = None) -> "AnalysisOutcome":
        return cls(url=url, status=STATUS_SKIPPED, reason=reason, article=article)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "status": self.status}
        if self.status == STATUS_SKIPPED:
            data.update({"skipped": True, "reason": self.reason})
        if self.article is not None:
            data["article"] = {k: v for k, v in self.article.to_dict().items() if k != "content"}
        if self.analysis is not None:
            data["analysis"] = self.analysis.to_dict()
        if self.error is not None:
            data["error"] = self.error
        if self.analysis_error:
            data["analysisError"] = True
        return data


@dataclass
class StockInfoOutcome:
    """Result of identifying which stock an article is about."""
    url: str
    status: str
    reason: Optional[str] = None
    article: Optional[Article] = None
    stock: Optional[StockIdentity] = None

    @property
    def skipped(self) -> bool:
        return self.status == STATUS_SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        if self.skipped:
            return {"skipped": True, "reason": self.reason}
        return {
            "title": self.article.title if self.article else "",
            "symbol": self.stock.symbol if self.stock else MARKET,
            "company": self.stock.name if self.stock else MARKET,
        }
