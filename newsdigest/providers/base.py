"""Abstract base classes for fetch strategies, analyzers, stores and news sources."""

from abc import ABC, abstractmethod
from typing import List, Tuple

from newsdigest.models.datatypes import AnalysisResult, PersistedRecord, StockIdentity


class FetchStrategy(ABC):
    """One transport for retrieving raw HTML. PageFetcher tries these in order."""

    name: str = "strategy"

    def applies_to(self, url: str) -> bool:
        """Whether this strategy should be attempted for ``url`` at all."""
        return True

    @abstractmethod
    def attempt(self, url: str) -> Tuple[str, int | None]:
        """
        Retrieve raw HTML for a URL.

        Args:
            url (str): The page to retrieve.

        Returns:
            Tuple[str, int | None]: The raw HTML and the HTTP status code, if known.

        Raises:
            StrategyError: When this transport cannot retrieve the page.
        """
        pass


class Analyzer(ABC):
    """Abstract interface for turning article text into a summary and sentiment."""

    @abstractmethod
    def analyze(self, text: str, stock: StockIdentity) -> AnalysisResult:
        """
        Summarize the text and classify its impact on the stock.

        Empty text yields a neutral default rather than an error.

        Raises:
            AnalysisError: When the underlying model call fails.
        """
        pass

    @abstractmethod
    def extract_stock_info(self, text: str, title: str) -> StockIdentity:
        """
        Best-effort (symbol, company) extraction from an article.

        Returns ``StockIdentity("Market", "Market")`` when indeterminate.
        """
        pass


class ArticleStore(ABC):
    """Document store keyed by article URL with upsert semantics."""

    @abstractmethod
    def exists(self, url: str) -> bool:
        """Return True if a record for ``url`` exists. Raises PersistenceError."""
        pass

    @abstractmethod
    def upsert(self, record: PersistedRecord) -> None:
        """Create the record, or update dates/sentiment/summary if it exists."""
        pass


class NewsLinkProvider(ABC):
    """Abstract interface for discovering article URLs for a stock."""

    @abstractmethod
    def fetch_links(self, stock: StockIdentity) -> List[str]:
        """Return article URLs, newest first where the source orders them."""
        pass
