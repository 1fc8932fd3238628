"""Selector and heuristics table shared by the extractor and link discovery.

Extraction cascade:
    site rule (if hostname matches) → generic containers → <body> paragraphs → raw <body> text

Thresholds:
    Site-rule paragraphs must be longer than 20 characters, generic-container
    paragraphs longer than 30 characters.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

# Probed in order; the first element yielding a non-empty datetime/content/text wins.
DATE_SELECTORS: Tuple[str, ...] = (
    "time",
    "[datetime]",
    "[pubdate]",
    'meta[property="article:published_time"]',
    ".date",
    ".time",
    ".timestamp",
    ".article-date",
    ".publish-date",
)

# First selector present in the document is used as the content container.
CONTENT_CONTAINER_SELECTORS: Tuple[str, ...] = (
    "article",
    ".article-content",
    ".article-body",
    ".story-body",
    ".story-content",
    ".news-content",
    ".post-content",
    ".entry-content",
    ".content",
    "main",
)

# Paragraphs under any of these are navigation/boilerplate.
EXCLUDED_ANCESTOR_TAGS: Tuple[str, ...] = ("nav", "header", "footer")
EXCLUDED_ANCESTOR_CLASSES: Tuple[str, ...] = ("ad", "advertisement")

GENERIC_MIN_PARAGRAPH_LENGTH = 30
SITE_MIN_PARAGRAPH_LENGTH = 20


@dataclass(frozen=True)
class SiteRule:
    """Known markup for one site."""
    hostname: str
    description_selector: Optional[str]
    body_selectors: Tuple[str, ...]
    min_paragraph_length: int = SITE_MIN_PARAGRAPH_LENGTH

    def matches(self, hostname: str) -> bool:
        return hostname == self.hostname or hostname.endswith("." + self.hostname)


YAHOO_FINANCE = SiteRule(
    hostname="finance.yahoo.com",
    description_selector=".caas-description",
    body_selectors=(".caas-body",),
)

SITE_RULES: Tuple[SiteRule, ...] = (YAHOO_FINANCE,)


def site_rule_for(hostname: str) -> Optional[SiteRule]:
    for rule in SITE_RULES:
        if rule.matches(hostname):
            return rule
    return None


# ── Yahoo Finance endpoints ───────────────────────────────────────────────────

YAHOO_BASE_URL = "https://finance.yahoo.com"
YAHOO_CONTENT_API = (
    "https://finance.yahoo.com/_finance_doubledown/api/resource/"
    "content.article;caasId={article_id}"
)
YAHOO_RSS_URL = "https://feeds.finance.yahoo.com/rss/2.0/headline"

# Topic-page links worth analysing: news or video articles ending in .html
NEWS_LINK_MARKERS: Tuple[str, ...] = ("/news/", "/video/")
NEWS_LINK_SUFFIX = ".html"
