"""Shared test fixtures for the news digest pipeline.

Provides sample article markup and in-memory collaborators (fetch strategy,
analyzer, store) so the fetch → extract → analyze → persist flow can be
exercised without network or database access.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from newsdigest.core.errors import AnalysisError, StrategyError
from newsdigest.models.datatypes import AnalysisResult, PersistedRecord, Sentiment, StockIdentity
from newsdigest.pipeline.orchestrator import AnalysisOrchestrator
from newsdigest.providers.base import Analyzer, ArticleStore, FetchStrategy
from newsdigest.providers.fetchers import PageFetcher

YAHOO_URL = "https://finance.yahoo.com/news/apple-unveils-new-chips-123456.html"
GENERIC_URL = "https://www.example-news.com/markets/apple-rally"


# ============================================================
# Sample markup
# ============================================================

@pytest.fixture
def yahoo_article_html():
    """Yahoo Finance page: description + .caas-body, plus a competing <article>."""
    return """
    <html>
      <head>
        <title>Apple unveils new chips - Yahoo Finance</title>
        <meta property="article:published_time" content="2024-03-01T14:30:00Z">
      </head>
      <body>
        <article>
          <p>Generic container paragraph that must not be selected here.</p>
        </article>
        <div class="caas-description">Apple unveils new chips.</div>
        <div class="caas-body">
          <p>Revenue grew in Q3 again.</p>
          <p>Shares fell sharply.</p>
          <p>Analysts expect the new chips to lift margins next year.</p>
        </div>
      </body>
    </html>
    """


@pytest.fixture
def generic_article_html():
    """Non-Yahoo page: an <article> containing a nav block and real paragraphs."""
    return """
    <html>
      <head><title>Apple rallies on earnings</title></head>
      <body>
        <article>
          <nav>
            <p>Skip to main content now.</p>
            <p>Markets Home Quotes Portfolio Watchlists</p>
          </nav>
          <time datetime="2024-02-20T09:15:00+00:00">Feb 20</time>
          <p>Apple shares rose 4% after earnings</p>
          <div class="ad"><p>Open a brokerage account today and get free trades</p></div>
          <p>Tiny.</p>
          <p>The company also raised its dividend by four percent.</p>
        </article>
        <footer><p>Copyright Example News Corporation, all rights reserved.</p></footer>
      </body>
    </html>
    """


# ============================================================
# In-memory collaborators
# ============================================================

class StaticStrategy(FetchStrategy):
    """Serves canned HTML per URL; unknown URLs fail like a network error."""

    name = "static"

    def __init__(self, pages: Optional[Dict[str, str]] = None) -> None:
        self.pages = dict(pages or {})
        self.calls: List[str] = []

    def attempt(self, url: str) -> Tuple[str, Optional[int]]:
        self.calls.append(url)
        if url not in self.pages:
            raise StrategyError(self.name, "connection refused")
        return self.pages[url], 200


class FakeAnalyzer(Analyzer):
    """Returns a fixed result; raises AnalysisError for URLs' content in ``fail_on``."""

    def __init__(
        self,
        result: Optional[AnalysisResult] = None,
        fail_on: Tuple[str, ...] = (),
        stock: Optional[StockIdentity] = None,
    ) -> None:
        self.result = result or AnalysisResult(summary="Apple launched new chips.", sentiment=Sentiment.GOOD)
        self.fail_on = fail_on
        self.stock = stock or StockIdentity("AAPL", "Apple Inc.")
        self.analyze_calls: List[Tuple[str, StockIdentity]] = []
        self.extract_calls: List[Tuple[str, str]] = []

    def analyze(self, text, stock):
        self.analyze_calls.append((text, stock))
        if any(marker in text for marker in self.fail_on):
            raise AnalysisError("provider returned 401 Unauthorized")
        return self.result

    def extract_stock_info(self, text, title):
        self.extract_calls.append((text, title))
        return self.stock


class MemoryStore(ArticleStore):
    """Dict-backed store keyed by URL that counts calls."""

    def __init__(self) -> None:
        self.records: Dict[str, PersistedRecord] = {}
        self.exists_calls = 0
        self.upsert_calls = 0

    def exists(self, url):
        self.exists_calls += 1
        return url in self.records

    def upsert(self, record):
        self.upsert_calls += 1
        self.records[record.url] = record


@pytest.fixture
def static_strategy(yahoo_article_html, generic_article_html):
    return StaticStrategy({YAHOO_URL: yahoo_article_html, GENERIC_URL: generic_article_html})


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def orchestrator(static_strategy, fake_analyzer, memory_store):
    return AnalysisOrchestrator(PageFetcher([static_strategy]), fake_analyzer, memory_store)


@pytest.fixture
def apple():
    return StockIdentity("AAPL", "Apple Inc.")
