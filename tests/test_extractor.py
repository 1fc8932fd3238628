"""Tests for ArticleExtractor: title, publish date and the body-text cascade.

Pure markup in, Article out — no network access.
"""

from datetime import datetime, timedelta, timezone

from newsdigest.models.datatypes import FAILED_CONTENT, FAILED_TITLE, FetchFailure, FetchSuccess
from newsdigest.providers.extractor import ArticleExtractor, build_article, parse_date

from tests.conftest import GENERIC_URL, YAHOO_URL


def _page(body: str, head: str = "<title>Headline</title>") -> str:
    return f"<html><head>{head}</head><body>{body}</body></html>"


# ============================================================
# Body cascade
# ============================================================

class TestContentCascade:

    def test_site_container_preferred_over_generic_article(self, yahoo_article_html):
        article = ArticleExtractor().extract(yahoo_article_html, YAHOO_URL)

        assert article.content == (
            "Apple unveils new chips.\n\n"
            "Revenue grew in Q3 again.\n\n"
            "Analysts expect the new chips to lift margins next year."
        )
        assert "Generic container paragraph" not in article.content

    def test_site_paragraph_threshold_is_strictly_above_20_chars(self, yahoo_article_html):
        article = ArticleExtractor().extract(yahoo_article_html, YAHOO_URL)

        # "Shares fell sharply." is exactly 20 characters
        assert "Shares fell sharply." not in article.content
        assert "Revenue grew in Q3 again." in article.content

    def test_site_rule_ignored_for_other_hosts(self, yahoo_article_html):
        article = ArticleExtractor().extract(yahoo_article_html, GENERIC_URL)

        assert article.content == "Generic container paragraph that must not be selected here."

    def test_generic_container_filters_nav_ads_and_short_paragraphs(self, generic_article_html):
        article = ArticleExtractor().extract(generic_article_html, GENERIC_URL)

        assert article.content == (
            "Apple shares rose 4% after earnings\n\n"
            "The company also raised its dividend by four percent."
        )

    def test_paragraph_in_nav_excluded_regardless_of_length(self, generic_article_html):
        content = ArticleExtractor().extract(generic_article_html, GENERIC_URL).content

        assert "Skip to main content now." not in content      # 25 chars
        assert "Markets Home Quotes Portfolio Watchlists" not in content  # 40 chars
        assert "brokerage" not in content
        assert "Copyright" not in content

    def test_35_char_paragraph_outside_excluded_ancestors_included(self):
        html = _page("<article><p>Apple shares rose 4% after earnings</p></article>")
        content = ArticleExtractor().extract(html, GENERIC_URL).content

        assert content == "Apple shares rose 4% after earnings"

    def test_generic_threshold_is_strictly_above_30_chars(self):
        thirty = "a" * 30
        html = _page(f"<main><p>{thirty}</p><p>{'b' * 31}</p></main>")
        content = ArticleExtractor().extract(html, GENERIC_URL).content

        assert content == "b" * 31

    def test_first_matching_container_selector_wins(self):
        html = _page(
            "<main><p>Main paragraph that is long enough to be kept.</p></main>"
            "<div class='article-body'><p>Article body paragraph that is long enough.</p></div>"
        )
        content = ArticleExtractor().extract(html, GENERIC_URL).content

        assert content == "Article body paragraph that is long enough."

    def test_body_paragraphs_used_when_no_container(self):
        html = _page(
            "<nav><p>Navigation paragraph that is quite long indeed.</p></nav>"
            "<div><p>Loose paragraph in the body that is long enough.</p></div>"
        )
        content = ArticleExtractor().extract(html, GENERIC_URL).content

        assert content == "Loose paragraph in the body that is long enough."

    def test_falls_back_to_collapsed_body_text(self):
        html = _page("<div>Short   bits</div>\n<span>of   text</span>")
        content = ArticleExtractor().extract(html, GENERIC_URL).content

        assert content == "Short bits of text"


# ============================================================
# Title, date, source
# ============================================================

class TestFields:

    def test_title_from_title_tag(self, generic_article_html):
        article = ArticleExtractor().extract(generic_article_html, GENERIC_URL)
        assert article.title == "Apple rallies on earnings"

    def test_title_falls_back_to_h1(self):
        html = _page("<h1>  Fallback headline  </h1>", head="<title>   </title>")
        assert ArticleExtractor().extract(html, GENERIC_URL).title == "Fallback headline"

    def test_missing_title_and_h1_gives_empty_title(self):
        article = ArticleExtractor().extract("<html><body><p>x</p></body></html>", GENERIC_URL)
        assert article.title == ""
        assert article.is_failure

    def test_source_is_hostname(self, yahoo_article_html):
        assert ArticleExtractor().extract(yahoo_article_html, YAHOO_URL).source == "finance.yahoo.com"

    def test_publish_date_from_time_element(self, generic_article_html):
        article = ArticleExtractor().extract(generic_article_html, GENERIC_URL)
        assert article.publish_date == datetime(2024, 2, 20, 9, 15, tzinfo=timezone.utc)

    def test_publish_date_from_meta_tag(self, yahoo_article_html):
        article = ArticleExtractor().extract(yahoo_article_html, YAHOO_URL)
        assert article.publish_date == datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc)

    def test_unparseable_date_continues_to_next_selector(self):
        html = _page(
            "<time>sometime recently</time>",
            head='<title>T</title><meta property="article:published_time" content="2024-01-05T08:00:00Z">',
        )
        article = ArticleExtractor().extract(html, GENERIC_URL)
        assert article.publish_date == datetime(2024, 1, 5, 8, 0, tzinfo=timezone.utc)

    def test_missing_date_defaults_to_now(self):
        before = datetime.now(timezone.utc)
        article = ArticleExtractor().extract(_page("<p>No date here</p>"), GENERIC_URL)
        after = datetime.now(timezone.utc)

        assert before - timedelta(seconds=1) <= article.publish_date <= after + timedelta(seconds=1)

    def test_parse_date_treats_naive_as_utc(self):
        assert parse_date("2024-03-01 10:00") == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_parse_date_returns_none_for_garbage(self):
        assert parse_date("garbage") is None


# ============================================================
# build_article
# ============================================================

class TestBuildArticle:

    def test_failure_becomes_sentinel_article(self):
        article = build_article(FetchFailure(reason="http: HTTP 503"), GENERIC_URL)

        assert article.title == FAILED_TITLE
        assert article.content == FAILED_CONTENT
        assert article.url == GENERIC_URL
        assert article.is_failure

    def test_success_is_extracted(self, generic_article_html):
        article = build_article(FetchSuccess(html=generic_article_html, strategy="http"), GENERIC_URL)

        assert article.title == "Apple rallies on earnings"
        assert not article.is_failure
