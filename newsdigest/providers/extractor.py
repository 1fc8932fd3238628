"""HTML → Article extraction.

Pure functions over markup — no I/O happens here. See ``selectors.py`` for
the cascade and the selector tables.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

import dateutil.parser
from bs4 import BeautifulSoup, Tag

from newsdigest.core.logger import logger
from newsdigest.models.datatypes import (
    Article, FetchFailure, FetchResult, hostname_of, utc_now,
)
from newsdigest.providers.selectors import (
    CONTENT_CONTAINER_SELECTORS,
    DATE_SELECTORS,
    EXCLUDED_ANCESTOR_CLASSES,
    EXCLUDED_ANCESTOR_TAGS,
    GENERIC_MIN_PARAGRAPH_LENGTH,
    SiteRule,
    site_rule_for,
)

PARAGRAPH_SEPARATOR = "\n\n"


class ArticleExtractor:
    """Parses raw HTML into an :class:`Article`.

    Args:
        parser: BeautifulSoup tree builder (``"lxml"`` by default).
    """

    def __init__(self, parser: str = "lxml") -> None:
        self.parser = parser

    def extract(self, raw_html: str, url: str) -> Article:
        """Build an Article from page markup.

        Title, publish date and body are each resolved independently. A page
        without a ``<title>`` or ``<h1>`` yields an empty title, which callers
        treat as a failed fetch.

        Args:
            raw_html: Page markup as returned by a fetch strategy.
            url: The article URL; its hostname selects any site rule.

        Returns:
            Article with plain-text content (paragraphs joined by a blank line).
        """
        soup = BeautifulSoup(raw_html or "", self.parser)
        hostname = hostname_of(url)

        title = extract_title(soup)
        publish_date = extract_publish_date(soup)
        if publish_date is None:
            logger.debug(f"ArticleExtractor: no publish date for {url} — using now")
            publish_date = utc_now()

        content = extract_content(soup, hostname)
        logger.info(
            f"ArticleExtractor: [{hostname}] title={title[:60]!r} "
            f"content_chars={len(content)}"
        )
        return Article(
            title=title,
            url=url,
            content=content,
            publish_date=publish_date,
            source=hostname,
        )


def build_article(result: FetchResult, url: str, extractor: Optional[ArticleExtractor] = None) -> Article:
    """Turn a PageFetcher result into an Article; a failure becomes the sentinel article."""
    if isinstance(result, FetchFailure):
        logger.warning(f"ArticleExtractor: fetch failed for {url}: {result.reason}")
        return Article.failed(url)
    return (extractor or ArticleExtractor()).extract(result.html, url)


# ── field extractors ──────────────────────────────────────────────────────────

def extract_title(soup: BeautifulSoup) -> str:
    if soup.title is not None:
        title = soup.title.get_text().strip()
        if title:
            return title
    h1 = soup.find("h1")
    return h1.get_text().strip() if h1 is not None else ""


def extract_publish_date(soup: BeautifulSoup) -> Optional[datetime]:
    """Probe ``DATE_SELECTORS`` in order; return the first value that parses."""
    for selector in DATE_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        raw = element.get("datetime") or element.get("content") or element.get_text().strip()
        if not raw:
            continue
        parsed = parse_date(raw)
        if parsed is not None:
            return parsed
        logger.debug(f"ArticleExtractor: unparseable date {raw!r} from {selector!r}")
    return None


def parse_date(raw: str) -> Optional[datetime]:
    """Parse a date string; naive values are taken as UTC."""
    try:
        parsed = dateutil.parser.parse(raw.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_content(soup: BeautifulSoup, hostname: str) -> str:
    """Run the body-text cascade and return the first non-empty result."""
    rule = site_rule_for(hostname)
    if rule is not None:
        content = _site_content(soup, rule)
        if content:
            return content

    content = _generic_content(soup)
    if content:
        return content

    body = soup.body or soup
    return _collapse(body.get_text(" "))


def _site_content(soup: BeautifulSoup, rule: SiteRule) -> str:
    parts: List[str] = []
    if rule.description_selector:
        description = soup.select_one(rule.description_selector)
        if description is not None:
            text = _collapse(description.get_text())
            if text:
                parts.append(text)

    for selector in rule.body_selectors:
        container = soup.select_one(selector)
        if container is None:
            continue
        parts.extend(
            text for text in (_collapse(p.get_text()) for p in container.find_all("p"))
            if len(text) > rule.min_paragraph_length
        )
        break
    return PARAGRAPH_SEPARATOR.join(parts)


def _generic_content(soup: BeautifulSoup) -> str:
    containers: List[Tag] = []
    for selector in CONTENT_CONTAINER_SELECTORS:
        containers = soup.select(selector)
        if containers:
            logger.debug(f"ArticleExtractor: content container {selector!r}")
            break
    if not containers and soup.body is not None:
        containers = [soup.body]

    paragraphs = [
        text for text in (_collapse(p.get_text()) for p in _unique_paragraphs(containers))
        if len(text) > GENERIC_MIN_PARAGRAPH_LENGTH
    ]
    return PARAGRAPH_SEPARATOR.join(paragraphs)


def _unique_paragraphs(containers: Iterable[Tag]) -> List[Tag]:
    # Nested containers (article inside article) would otherwise repeat paragraphs.
    seen = set()
    result: List[Tag] = []
    for container in containers:
        for p in container.find_all("p"):
            if id(p) in seen or _is_excluded(p):
                continue
            seen.add(id(p))
            result.append(p)
    return result


def _is_excluded(element: Tag) -> bool:
    for parent in element.parents:
        if parent.name in EXCLUDED_ANCESTOR_TAGS:
            return True
        classes = parent.get("class") or []
        if any(cls in EXCLUDED_ANCESTOR_CLASSES for cls in classes):
            return True
    return False


def _collapse(text: str) -> str:
    return " ".join(text.split())
