"""Tests for AnalysisOrchestrator: skip/error taxonomy, force, batch mode.

Collaborators are the in-memory fakes from conftest plus a real SQLite store
for the one-record-per-URL check.
"""

from unittest.mock import patch

import pytest

from newsdigest.core.errors import PersistenceError
from newsdigest.models.datatypes import (
    REASON_ARTICLE_EXISTS,
    REASON_TITLE_NOT_FOUND,
    STATUS_ANALYZED,
    STATUS_ERROR,
    STATUS_EXTRACTED,
    AnalysisResult,
    Sentiment,
)
from newsdigest.pipeline.orchestrator import AnalysisOrchestrator
from newsdigest.providers.fetchers import PageFetcher
from newsdigest.providers.store import SQLiteArticleStore

from tests.conftest import GENERIC_URL, YAHOO_URL, FakeAnalyzer, MemoryStore, StaticStrategy

MISSING_URL = "https://www.example-news.com/gone"


class TestAnalyzeArticleFromUrl:

    def test_analyzes_and_persists(self, orchestrator, fake_analyzer, memory_store, apple):
        outcome = orchestrator.analyze_article_from_url(GENERIC_URL, apple)

        assert outcome.status == STATUS_ANALYZED
        assert outcome.article.title == "Apple rallies on earnings"
        assert outcome.analysis.sentiment == Sentiment.GOOD

        record = memory_store.records[GENERIC_URL]
        assert record.symbol == "AAPL"
        assert record.company == "Apple Inc."
        assert record.title == "Apple rallies on earnings"
        assert record.publish_date == outcome.article.publish_date
        assert record.summary == "Apple launched new chips."
        assert record.sentiment == Sentiment.GOOD
        assert fake_analyzer.analyze_calls[0][0] == outcome.article.content

    def test_second_call_is_skipped(self, orchestrator, fake_analyzer, memory_store, apple):
        orchestrator.analyze_article_from_url(GENERIC_URL, apple)
        second = orchestrator.analyze_article_from_url(GENERIC_URL, apple)

        assert second.skipped
        assert second.reason == REASON_ARTICLE_EXISTS
        assert second.to_dict()["skipped"] is True
        assert len(fake_analyzer.analyze_calls) == 1
        assert memory_store.upsert_calls == 1

    def test_existing_url_is_not_fetched(self, static_strategy, fake_analyzer, apple):
        store = MemoryStore()
        orch = AnalysisOrchestrator(PageFetcher([static_strategy]), fake_analyzer, store)
        orch.analyze_article_from_url(GENERIC_URL, apple)
        static_strategy.calls.clear()

        orch.analyze_article_from_url(GENERIC_URL, apple)

        assert static_strategy.calls == []

    def test_fetch_failure_skips_without_analyzer_or_store_write(
        self, orchestrator, fake_analyzer, memory_store, apple,
    ):
        outcome = orchestrator.analyze_article_from_url(MISSING_URL, apple)

        assert outcome.skipped
        assert outcome.reason == REASON_TITLE_NOT_FOUND
        assert fake_analyzer.analyze_calls == []
        assert memory_store.upsert_calls == 0

    def test_page_without_title_skips(self, fake_analyzer, memory_store, apple):
        strategy = StaticStrategy({GENERIC_URL: "<html><body><p>No title anywhere on this page.</p></body></html>"})
        orch = AnalysisOrchestrator(PageFetcher([strategy]), fake_analyzer, memory_store)

        outcome = orch.analyze_article_from_url(GENERIC_URL, apple)

        assert outcome.reason == REASON_TITLE_NOT_FOUND
        assert fake_analyzer.analyze_calls == []

    def test_analysis_error_is_reported_and_not_persisted(self, static_strategy, memory_store, apple):
        analyzer = FakeAnalyzer(fail_on=("dividend",))
        orch = AnalysisOrchestrator(PageFetcher([static_strategy]), analyzer, memory_store)

        outcome = orch.analyze_article_from_url(GENERIC_URL, apple)

        assert outcome.status == STATUS_ERROR
        assert outcome.analysis_error
        assert "401" in outcome.error
        assert outcome.article.title == "Apple rallies on earnings"
        assert memory_store.upsert_calls == 0
        assert outcome.to_dict()["analysisError"] is True

    def test_unexpected_analyzer_exception_is_not_persisted(self, static_strategy, memory_store, apple):
        analyzer = FakeAnalyzer()
        with patch.object(analyzer, "analyze", side_effect=RuntimeError("model crashed")):
            orch = AnalysisOrchestrator(PageFetcher([static_strategy]), analyzer, memory_store)
            outcome = orch.analyze_article_from_url(GENERIC_URL, apple)

        assert outcome.analysis_error
        assert memory_store.upsert_calls == 0

    def test_store_failure_propagates(self, static_strategy, fake_analyzer, apple):
        store = MemoryStore()
        with patch.object(store, "upsert", side_effect=PersistenceError("disk full")):
            orch = AnalysisOrchestrator(PageFetcher([static_strategy]), fake_analyzer, store)
            with pytest.raises(PersistenceError):
                orch.analyze_article_from_url(GENERIC_URL, apple)

    def test_one_record_per_url_in_sqlite(self, static_strategy, apple, tmp_path):
        store = SQLiteArticleStore(str(tmp_path / "articles.db"))
        orch = AnalysisOrchestrator(PageFetcher([static_strategy]), FakeAnalyzer(), store)

        orch.analyze_article_from_url(GENERIC_URL, apple)
        second = orch.analyze_article_from_url(GENERIC_URL, apple)

        assert second.reason == REASON_ARTICLE_EXISTS
        assert store.count() == 1


class TestForceAnalyze:

    def test_bypasses_existence_check_and_updates_in_place(self, static_strategy, apple, tmp_path):
        store = SQLiteArticleStore(str(tmp_path / "articles.db"))
        orch = AnalysisOrchestrator(PageFetcher([static_strategy]), FakeAnalyzer(), store)
        orch.analyze_article_from_url(GENERIC_URL, apple)

        orch.analyzer = FakeAnalyzer(result=AnalysisResult("Dividend raised.", Sentiment.BAD))
        outcome = orch.force_analyze(GENERIC_URL, apple)

        assert outcome.status == STATUS_ANALYZED
        assert store.count() == 1
        record = store.get(GENERIC_URL)
        assert record.summary == "Dividend raised."
        assert record.sentiment == Sentiment.BAD


class TestExtractStockInfo:

    def test_returns_analyzer_identity(self, orchestrator, fake_analyzer, memory_store):
        outcome = orchestrator.extract_stock_info_from_url(YAHOO_URL)

        assert outcome.status == STATUS_EXTRACTED
        assert outcome.to_dict() == {
            "title": "Apple unveils new chips - Yahoo Finance",
            "symbol": "AAPL",
            "company": "Apple Inc.",
        }
        assert fake_analyzer.analyze_calls == []
        assert memory_store.upsert_calls == 0

    def test_existing_url_skipped(self, orchestrator, apple):
        orchestrator.analyze_article_from_url(YAHOO_URL, apple)
        assert orchestrator.extract_stock_info_from_url(YAHOO_URL).reason == REASON_ARTICLE_EXISTS

    def test_fetch_failure_skipped(self, orchestrator, fake_analyzer):
        outcome = orchestrator.extract_stock_info_from_url(MISSING_URL)

        assert outcome.to_dict() == {"skipped": True, "reason": REASON_TITLE_NOT_FOUND}
        assert fake_analyzer.extract_calls == []


class TestAnalyzeBatch:

    def test_partial_failure_keeps_input_order(self, orchestrator, apple):
        urls = [GENERIC_URL, MISSING_URL, YAHOO_URL]

        results = orchestrator.analyze_batch(urls, apple)

        assert [r.url for r in results] == urls
        assert results[0].status == STATUS_ANALYZED
        assert results[1].skipped and results[1].reason == REASON_TITLE_NOT_FOUND
        assert results[2].status == STATUS_ANALYZED
        assert results[0].analysis is not None and results[2].analysis is not None

    def test_progress_receives_growing_partial_results(self, orchestrator, apple):
        snapshots = []

        orchestrator.analyze_batch([GENERIC_URL, MISSING_URL, YAHOO_URL], apple, on_progress=snapshots.append)

        assert [len(s) for s in snapshots] == [1, 2, 3]
        assert snapshots[0][0].url == GENERIC_URL

    def test_store_error_recorded_per_item(self, static_strategy, fake_analyzer, apple):
        store = MemoryStore()
        original = store.upsert

        def flaky_upsert(record):
            if record.url == GENERIC_URL:
                raise PersistenceError("write rejected")
            original(record)

        store.upsert = flaky_upsert
        orch = AnalysisOrchestrator(PageFetcher([static_strategy]), fake_analyzer, store)

        results = orch.analyze_batch([GENERIC_URL, YAHOO_URL], apple)

        assert results[0].status == STATUS_ERROR
        assert results[0].error == "write rejected"
        assert not results[0].analysis_error
        assert results[1].status == STATUS_ANALYZED

    def test_should_stop_ends_batch_between_items(self, orchestrator, apple):
        seen = []
        results = orchestrator.analyze_batch(
            [GENERIC_URL, YAHOO_URL, MISSING_URL], apple,
            should_stop=lambda: len(seen) >= 1,
            on_progress=seen.append,
        )
        assert [r.url for r in results] == [GENERIC_URL]

    def test_force_batch_reanalyses_existing(self, orchestrator, fake_analyzer, apple):
        orchestrator.analyze_article_from_url(GENERIC_URL, apple)

        results = orchestrator.analyze_batch([GENERIC_URL], apple, force=True)

        assert results[0].status == STATUS_ANALYZED
        assert len(fake_analyzer.analyze_calls) == 2

    def test_delay_between_items_only(self, orchestrator, apple):
        with patch("newsdigest.pipeline.orchestrator.time.sleep") as sleep:
            orchestrator.analyze_batch([GENERIC_URL, MISSING_URL, YAHOO_URL], apple, delay_seconds=5)

        assert sleep.call_count == 2
        sleep.assert_called_with(5)

    def test_filter_new_urls(self, orchestrator, apple):
        orchestrator.analyze_article_from_url(GENERIC_URL, apple)
        assert orchestrator.filter_new_urls([GENERIC_URL, YAHOO_URL]) == [YAHOO_URL]
