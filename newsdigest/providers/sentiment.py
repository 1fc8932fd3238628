"""Local CPU Analyzer using ProsusAI/finbert — no API key required.

Pipeline:
    article text → FinBERTAnalyzer.analyze() → AnalysisResult

Label mapping:
    finbert "positive" → Good
    finbert "negative" → Bad
    finbert "neutral"  → Neutral

FinBERT does not summarise; the summary is the article's leading text cut
at ``SUMMARY_CHARS`` characters. Stock info comes from ``$TICKER`` and
``(NYSE: TICKER)`` mentions.
"""

import re
from typing import Optional

from newsdigest.core.errors import AnalysisError
from newsdigest.core.logger import logger
from newsdigest.core.stock_utils import get_long_name, normalize_symbol
from newsdigest.models.datatypes import MARKET, AnalysisResult, Sentiment, StockIdentity
from newsdigest.providers.analyzer import EMPTY_CONTENT_SUMMARY
from newsdigest.providers.base import Analyzer

_MODEL_NAME = "ProsusAI/finbert"
SUMMARY_CHARS = 200

# FinBERT raw label → Sentiment
_LABEL_MAP = {
    "positive": Sentiment.GOOD,
    "negative": Sentiment.BAD,
    "neutral": Sentiment.NEUTRAL,
}

_EXCHANGE_TICKER = re.compile(r"\((?:NYSE|NASDAQ|AMEX|NYSEARCA)\s*:\s*([A-Z.]{1,6})\)")
_CASHTAG = re.compile(r"\$([A-Z]{1,5})\b")


class FinBERTAnalyzer(Analyzer):
    """Local CPU financial sentiment using ``ProsusAI/finbert``.

    The HuggingFace pipeline is loaded lazily on the first call to
    :meth:`analyze` so that importing this module has zero cost.

    Args:
        model_name: HuggingFace model identifier (default ``ProsusAI/finbert``).
        output_dir: Where the yfinance name cache lives, used to name extracted tickers.
        resolve_names: Look extracted tickers up on yfinance for a company name.
    """

    def __init__(
        self,
        model_name: str = _MODEL_NAME,
        output_dir: str = "output",
        resolve_names: bool = True,
    ) -> None:
        self.model_name = model_name
        self.output_dir = output_dir
        self.resolve_names = resolve_names
        self._pipeline = None  # lazy-loaded

    # ── public API ──────────────────────────────────────────────────────────

    def analyze(self, text: str, stock: StockIdentity) -> AnalysisResult:
        text = (text or "").strip()
        if not text:
            logger.debug("FinBERTAnalyzer: empty content — returning Neutral")
            return AnalysisResult(summary=EMPTY_CONTENT_SUMMARY, sentiment=Sentiment.NEUTRAL)

        pipe = self._get_pipeline()
        try:
            raw = pipe(text, truncation=True, max_length=512)
            # top_k unset may give list[list[dict]]; unwrap one level if so
            result = raw[0]
            if isinstance(result, list):
                result = result[0]
        except Exception as exc:
            logger.error(f"FinBERTAnalyzer: inference failed for {stock.symbol}: {exc}")
            raise AnalysisError(f"finbert inference failed: {exc}", exc) from exc

        raw_label: str = result["label"].lower()
        sentiment = _LABEL_MAP.get(raw_label, Sentiment.UNKNOWN)
        logger.info(
            f"FinBERTAnalyzer: [{stock.symbol}] {sentiment.value} "
            f"(raw={raw_label}/{float(result['score']):.3f})"
        )
        return AnalysisResult(summary=lead_summary(text), sentiment=sentiment)

    def extract_stock_info(self, text: str, title: str) -> StockIdentity:
        symbol = find_ticker(f"{title}\n{text or ''}")
        if symbol is None:
            return StockIdentity()
        name = get_long_name(symbol, self.output_dir) if self.resolve_names else symbol
        return StockIdentity(symbol=symbol, name=name)

    # ── internal ─────────────────────────────────────────────────────────────

    def _get_pipeline(self):
        if self._pipeline is None:
            from transformers import pipeline as hf_pipeline
            logger.info(
                f"FinBERTAnalyzer: loading model '{self.model_name}' on CPU "
                f"(first call only — subsequent calls reuse cached pipeline)"
            )
            self._pipeline = hf_pipeline(
                task="text-classification",
                model=self.model_name,
                device=-1,
            )
            logger.info("FinBERTAnalyzer: model loaded ✓")
        return self._pipeline


# ── helpers ───────────────────────────────────────────────────────────────────

def lead_summary(text: str, limit: int = SUMMARY_CHARS) -> str:
    """First paragraphs of the article, cut at a word boundary within ``limit`` chars."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    cut = flat[:limit].rsplit(" ", 1)[0]
    return cut + "..."


def find_ticker(text: str) -> Optional[str]:
    """Return the first exchange-qualified or cashtag ticker in ``text``."""
    for pattern in (_EXCHANGE_TICKER, _CASHTAG):
        match = pattern.search(text)
        if match:
            symbol = normalize_symbol(match.group(1))
            if symbol != MARKET:
                return symbol
    return None
