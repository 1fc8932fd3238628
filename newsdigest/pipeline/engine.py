"""Pipeline engine — config-driven run over stocks → link discovery → batch analysis.

Flow per configured stock:
  1. Identity  — symbol from config, name from config or yfinance (get_long_name)
  2. Links     — Yahoo RSS for a ticker, the topic page for ``Market``
  3. Batch     — AnalysisOrchestrator.analyze_batch (sequential, delayed)
  4. Report    — one CSV row per URL outcome

Serialises to output/analysis_report.csv. A stock whose link discovery fails is
logged and skipped — the engine always continues to the next stock.
"""

import csv
import os
from typing import Dict, List, Optional, Tuple

from newsdigest.core.config import Settings
from newsdigest.core.logger import logger
from newsdigest.core.stock_utils import get_long_name, normalize_symbol
from newsdigest.models.datatypes import MARKET, AnalysisOutcome, StockIdentity
from newsdigest.pipeline.orchestrator import AnalysisOrchestrator, build_orchestrator
from newsdigest.providers.base import NewsLinkProvider
from newsdigest.providers.news import YahooRssNewsProvider, YahooTopicPageProvider

REPORT_FILENAME = "analysis_report.csv"

_CSV_HEADER = [
    "Stock", "URL", "Status", "Reason",
    "Title", "Sentiment", "Summary", "Error",
]


class PipelineEngine:
    """Runs the analysis workflow for every stock in config.

    Args:
        settings: Resolved settings (stocks, limits, output dir, collaborators).
        orchestrator: Pre-built orchestrator; built from ``settings`` if omitted.
        ticker_links: Link source for real tickers (default Yahoo RSS).
        market_links: Link source for the ``Market`` identity (default topic page).
    """

    def __init__(
        self,
        settings: Settings,
        orchestrator: Optional[AnalysisOrchestrator] = None,
        ticker_links: Optional[NewsLinkProvider] = None,
        market_links: Optional[NewsLinkProvider] = None,
    ) -> None:
        self.settings = settings
        self.output_dir = settings.pipeline.output_dir
        self.orchestrator = orchestrator or build_orchestrator(settings)
        self.ticker_links = ticker_links or YahooRssNewsProvider()
        self.market_links = market_links or YahooTopicPageProvider(
            self.orchestrator.fetcher, settings.pipeline.topic_url,
        )

    # ── public ────────────────────────────────────────────────────────────────

    def run(self) -> List[Tuple[StockIdentity, AnalysisOutcome]]:
        """Run discovery + analysis for all configured stocks.

        Returns:
            ``(stock, outcome)`` pairs in processing order.
        """
        stocks = self._stock_identities()
        logger.info(
            f"PipelineEngine: {len(stocks)} stocks × up to "
            f"{self.settings.pipeline.max_articles_per_stock} articles"
        )

        rows: List[Tuple[StockIdentity, AnalysisOutcome]] = []
        for stock in stocks:
            rows.extend((stock, outcome) for outcome in self._process_stock(stock))

        self._write_csv(rows)
        logger.info(
            f"PipelineEngine: wrote {len(rows)} rows to "
            f"{os.path.join(self.output_dir, REPORT_FILENAME)}"
        )
        return rows

    # ── internal ──────────────────────────────────────────────────────────────

    def _stock_identities(self) -> List[StockIdentity]:
        configured = self.settings.pipeline.stocks or ({"symbol": MARKET},)
        identities = []
        for entry in configured:
            if isinstance(entry, str):
                entry = {"symbol": entry}
            symbol = normalize_symbol(entry.get("symbol"))
            name = entry.get("name") or get_long_name(symbol, self.output_dir)
            identities.append(StockIdentity(symbol=symbol, name=name))
        return identities

    def _process_stock(self, stock: StockIdentity) -> List[AnalysisOutcome]:
        provider = self.market_links if stock.is_market else self.ticker_links
        try:
            links = provider.fetch_links(stock)
        except Exception as exc:
            logger.error(f"PipelineEngine: link discovery failed for {stock.symbol}: {exc}")
            return []

        links = links[: self.settings.pipeline.max_articles_per_stock]
        if not links:
            logger.warning(f"PipelineEngine: no article links for {stock.symbol}")
            return []

        return self.orchestrator.analyze_batch(
            links, stock, delay_seconds=self.settings.pipeline.delay_seconds,
        )

    def _write_csv(self, rows: List[Tuple[StockIdentity, AnalysisOutcome]]) -> None:
        """Write rows to output/analysis_report.csv (overwrites each run)."""
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, REPORT_FILENAME)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=_CSV_HEADER)
            writer.writeheader()
            for stock, outcome in rows:
                writer.writerow(_report_row(stock, outcome))


def _report_row(stock: StockIdentity, outcome: AnalysisOutcome) -> Dict[str, str]:
    return {
        "Stock": stock.symbol,
        "URL": outcome.url,
        "Status": outcome.status,
        "Reason": outcome.reason or "",
        "Title": outcome.article.title if outcome.article else "",
        "Sentiment": outcome.analysis.sentiment.value if outcome.analysis else "",
        "Summary": outcome.analysis.summary if outcome.analysis else "",
        "Error": outcome.error or "",
    }
