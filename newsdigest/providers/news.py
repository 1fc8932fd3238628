"""News link discovery — which article URLs to analyse for a stock.

Sources:
  1. YahooRssNewsProvider   — Yahoo Finance headline RSS per ticker (feedparser).
  2. YahooTopicPageProvider — the stock-market-news topic page, scraped for
                              ``/news/`` and ``/video/`` article links.

Both return absolute URLs, deduplicated, in source order.
"""

import urllib.parse
from typing import Iterable, List, Optional

import feedparser
from bs4 import BeautifulSoup

from newsdigest.core.errors import DiscoveryError
from newsdigest.core.logger import logger
from newsdigest.core.retry import with_retries
from newsdigest.models.datatypes import FetchFailure, StockIdentity
from newsdigest.providers.base import NewsLinkProvider
from newsdigest.providers.fetchers import USER_AGENT, PageFetcher
from newsdigest.providers.selectors import (
    NEWS_LINK_MARKERS,
    NEWS_LINK_SUFFIX,
    YAHOO_BASE_URL,
    YAHOO_RSS_URL,
)


def _dedupe(urls: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            result.append(url)
    return result


# ── YahooRssNewsProvider ──────────────────────────────────────────────────────

@with_retries(max_retries=2, initial_delay=2, retry_on=(DiscoveryError,))
def _parse_feed(url: str):
    feed = feedparser.parse(url, agent=USER_AGENT)
    if feed.bozo and not feed.entries:
        raise DiscoveryError(f"RSS feed unreadable: {getattr(feed, 'bozo_exception', 'unknown error')}")
    if feed.bozo:
        logger.warning(f"YahooRssNewsProvider: RSS parse warning: {feed.bozo_exception} | url={url}")
    return feed


class YahooRssNewsProvider(NewsLinkProvider):
    """Yahoo Finance headline RSS, one feed per ticker.

    The ``Market`` identity has no ticker feed and yields no links.
    """

    def __init__(self, region: str = "US", lang: str = "en-US") -> None:
        self.region = region
        self.lang = lang

    def feed_url(self, symbol: str) -> str:
        query = urllib.parse.urlencode({"s": symbol, "region": self.region, "lang": self.lang})
        return f"{YAHOO_RSS_URL}?{query}"

    def fetch_links(self, stock: StockIdentity) -> List[str]:
        if stock.is_market:
            logger.warning("YahooRssNewsProvider: no ticker feed for the Market identity")
            return []

        url = self.feed_url(stock.symbol)
        logger.info(f"YahooRssNewsProvider: fetching [{stock.symbol}] {url}")
        feed = _parse_feed(url)
        links = _dedupe(getattr(entry, "link", "").strip() for entry in feed.entries)
        logger.info(f"YahooRssNewsProvider: {len(links)} links for {stock.symbol}")
        return links


# ── YahooTopicPageProvider ────────────────────────────────────────────────────

def extract_news_links(raw_html: str, base_url: str = YAHOO_BASE_URL) -> List[str]:
    """Return article links (``/news/`` or ``/video/``, ending ``.html``) in page order."""
    soup = BeautifulSoup(raw_html or "", "lxml")
    candidates = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        path = urllib.parse.urlparse(href).path
        if not path.endswith(NEWS_LINK_SUFFIX):
            continue
        if not any(marker in path for marker in NEWS_LINK_MARKERS):
            continue
        candidates.append(urllib.parse.urljoin(base_url, href))
    return _dedupe(candidates)


class YahooTopicPageProvider(NewsLinkProvider):
    """Scrapes the Yahoo Finance topic page through the PageFetcher chain.

    Args:
        fetcher: PageFetcher used to retrieve the topic page.
        topic_url: Topic page to scrape.
    """

    def __init__(self, fetcher: PageFetcher, topic_url: str) -> None:
        self.fetcher = fetcher
        self.topic_url = topic_url

    def fetch_links(self, stock: Optional[StockIdentity] = None) -> List[str]:
        logger.info(f"YahooTopicPageProvider: fetching {self.topic_url}")
        result = self.fetcher.fetch(self.topic_url)
        if isinstance(result, FetchFailure):
            raise DiscoveryError(f"topic page unavailable: {result.reason}")

        links = extract_news_links(result.html, self.topic_url)
        logger.info(f"YahooTopicPageProvider: {len(links)} article links found")
        return links
