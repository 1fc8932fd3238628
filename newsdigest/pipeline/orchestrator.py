"""AnalysisOrchestrator — existence check → fetch/extract → analyze → persist.

Per URL (linear, no retries at this layer):
  1. Store already has the URL          → skipped / article_exists
  2. Fetch + extract yields the sentinel → skipped / title_not_found
  3. Analyzer raises                    → error, analysisError, nothing persisted
  4. Otherwise                          → upsert record, analyzed

Store failures propagate from the single-URL operations. ``analyze_batch``
records them per item instead, so one bad URL never aborts the batch.

The existence check and the upsert are not atomic: two concurrent requests for
the same new URL may both analyse it. The store's upsert keeps one record.
"""

import time
from typing import Callable, Iterable, List, Optional

from newsdigest.core.config import Settings
from newsdigest.core.logger import logger
from newsdigest.models.datatypes import (
    REASON_ARTICLE_EXISTS,
    REASON_TITLE_NOT_FOUND,
    STATUS_ANALYZED,
    STATUS_ERROR,
    STATUS_EXTRACTED,
    STATUS_SKIPPED,
    AnalysisOutcome,
    Article,
    PersistedRecord,
    StockIdentity,
    StockInfoOutcome,
    utc_now,
)
from newsdigest.providers.analyzer import LLMAnalyzer
from newsdigest.providers.base import Analyzer, ArticleStore
from newsdigest.providers.extractor import ArticleExtractor, build_article
from newsdigest.providers.fetchers import PageFetcher
from newsdigest.providers.sentiment import FinBERTAnalyzer
from newsdigest.providers.store import build_store

ProgressCallback = Callable[[List[AnalysisOutcome]], None]


class AnalysisOrchestrator:
    """Drives one URL (or a list of URLs) through the analysis workflow.

    Args:
        fetcher: PageFetcher used to retrieve raw HTML.
        analyzer: Analyzer producing summary + sentiment.
        store: Article store keyed by URL.
        extractor: HTML → Article parser (default ``ArticleExtractor()``).
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        analyzer: Analyzer,
        store: ArticleStore,
        extractor: Optional[ArticleExtractor] = None,
    ) -> None:
        self.fetcher = fetcher
        self.analyzer = analyzer
        self.store = store
        self.extractor = extractor or ArticleExtractor()

    # ── single URL ────────────────────────────────────────────────────────────

    def fetch_article(self, url: str) -> Article:
        """Fetch and extract; a total fetch failure yields the sentinel Article."""
        return build_article(self.fetcher.fetch(url), url, self.extractor)

    def analyze_article_from_url(self, url: str, stock: StockIdentity) -> AnalysisOutcome:
        """Analyse ``url`` for ``stock`` unless the store already has it.

        Raises:
            PersistenceError: The existence check or the upsert failed.
        """
        if self.store.exists(url):
            logger.info(f"ANALYZE [{url}] status=skipped reason={REASON_ARTICLE_EXISTS}")
            return AnalysisOutcome.skip(url, REASON_ARTICLE_EXISTS)
        return self._fetch_analyze_persist(url, stock)

    def force_analyze(self, url: str, stock: StockIdentity) -> AnalysisOutcome:
        """Re-analyse ``url`` even if already stored; the record is updated in place."""
        logger.info(f"Orchestrator: forced re-analysis of {url}")
        return self._fetch_analyze_persist(url, stock)

    def extract_stock_info_from_url(self, url: str) -> StockInfoOutcome:
        """Identify the stock an article is about, without analysing or persisting it."""
        if self.store.exists(url):
            logger.info(f"EXTRACT [{url}] status=skipped reason={REASON_ARTICLE_EXISTS}")
            return StockInfoOutcome(url=url, status=STATUS_SKIPPED, reason=REASON_ARTICLE_EXISTS)

        article = self.fetch_article(url)
        if article.is_failure:
            logger.info(f"EXTRACT [{url}] status=skipped reason={REASON_TITLE_NOT_FOUND}")
            return StockInfoOutcome(url=url, status=STATUS_SKIPPED, reason=REASON_TITLE_NOT_FOUND, article=article)

        stock = self.analyzer.extract_stock_info(article.content, article.title)
        logger.info(f"EXTRACT [{url}] status={STATUS_EXTRACTED} symbol={stock.symbol} company={stock.name!r}")
        return StockInfoOutcome(url=url, status=STATUS_EXTRACTED, article=article, stock=stock)

    def _fetch_analyze_persist(self, url: str, stock: StockIdentity) -> AnalysisOutcome:
        article = self.fetch_article(url)
        if article.is_failure:
            logger.info(f"ANALYZE [{url}] status=skipped reason={REASON_TITLE_NOT_FOUND}")
            return AnalysisOutcome.skip(url, REASON_TITLE_NOT_FOUND, article)

        try:
            analysis = self.analyzer.analyze(article.content, stock)
        except Exception as exc:
            logger.error(f"ANALYZE [{url}] status=error reason=analysis_failed error={exc}")
            return AnalysisOutcome(
                url=url,
                status=STATUS_ERROR,
                article=article,
                error=str(exc),
                analysis_error=True,
            )

        self.store.upsert(PersistedRecord(
            url=url,
            symbol=stock.symbol,
            company=stock.name,
            title=article.title,
            publish_date=article.publish_date,
            generated_date=utc_now(),
            sentiment=analysis.sentiment,
            summary=analysis.summary,
        ))
        logger.info(f"ANALYZE [{url}] status={STATUS_ANALYZED} sentiment={analysis.sentiment.value}")
        return AnalysisOutcome(url=url, status=STATUS_ANALYZED, article=article, analysis=analysis)

    # ── batch ─────────────────────────────────────────────────────────────────

    def filter_new_urls(self, urls: Iterable[str]) -> List[str]:
        """Drop URLs the store already holds, keeping order."""
        new_urls = [url for url in urls if not self.store.exists(url)]
        logger.info(f"Orchestrator: {len(new_urls)} URLs not yet stored")
        return new_urls

    def analyze_batch(
        self,
        urls: Iterable[str],
        stock: StockIdentity,
        force: bool = False,
        delay_seconds: float = 0.0,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[AnalysisOutcome]:
        """Process URLs strictly one after another, in input order.

        Args:
            urls: Article URLs.
            stock: Identity every article is analysed against.
            force: Bypass the existence check for every URL.
            delay_seconds: Pause between consecutive URLs.
            on_progress: Called with the partial result list after each URL.
            should_stop: Checked before each URL; returning True ends the batch early.

        Returns:
            One outcome per processed URL, in input order.
        """
        urls = list(urls)
        results: List[AnalysisOutcome] = []
        for index, url in enumerate(urls):
            if should_stop is not None and should_stop():
                logger.warning(f"Orchestrator: batch stopped after {len(results)}/{len(urls)} URLs")
                break
            if index and delay_seconds > 0:
                time.sleep(delay_seconds)

            logger.info(f"Orchestrator: [{index + 1}/{len(urls)}] {url}")
            try:
                if force:
                    outcome = self.force_analyze(url, stock)
                else:
                    outcome = self.analyze_article_from_url(url, stock)
            except Exception as exc:
                logger.error(f"ANALYZE [{url}] status=error reason=unexpected error={exc}", exc_info=True)
                outcome = AnalysisOutcome(url=url, status=STATUS_ERROR, error=str(exc))

            results.append(outcome)
            if on_progress is not None:
                on_progress(list(results))

        _log_batch_summary(results)
        return results


def _log_batch_summary(results: List[AnalysisOutcome]) -> None:
    analyzed = sum(1 for r in results if r.status == STATUS_ANALYZED)
    skipped = sum(1 for r in results if r.skipped)
    errors = sum(1 for r in results if r.status == STATUS_ERROR)
    logger.info(f"Orchestrator: batch done — analyzed={analyzed} skipped={skipped} errors={errors}")


# ── factory ───────────────────────────────────────────────────────────────────

def build_analyzer(settings: Settings) -> Analyzer:
    """Local FinBERT for ``provider == "finbert"``, otherwise the chat-API analyzer."""
    if settings.analyzer.provider == "finbert":
        return FinBERTAnalyzer(model_name=settings.analyzer.model, output_dir=settings.pipeline.output_dir)
    return LLMAnalyzer(settings.analyzer)


def build_orchestrator(settings: Settings) -> AnalysisOrchestrator:
    """Wire fetcher, analyzer and store from one resolved Settings value."""
    return AnalysisOrchestrator(
        fetcher=PageFetcher.from_settings(settings.fetch),
        analyzer=build_analyzer(settings),
        store=build_store(settings.store),
    )
