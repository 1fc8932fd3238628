"""LLM-backed Analyzer over the OpenAI-compatible chat completions API.

One client class serves every configured provider (OpenAI, xAI, Gemini's
OpenAI-compatible endpoint); only base URL, key and model differ.

Free-text responses are parsed in two tiers:
  1. Labeled fields — ``Summary:`` / ``Impact:`` (or ``摘要：`` / ``影响：``),
     tolerant of Markdown bold markers.
  2. Keyword scan for positive/negative cues, default ``Neutral``.
     With ``sentiment_fallback="strict"`` the keyword scan is skipped and the
     default is ``Unknown``.
"""

import json
import re
from typing import Optional

from openai import OpenAI, OpenAIError

from newsdigest.core.config import AnalyzerSettings
from newsdigest.core.errors import AnalysisError
from newsdigest.core.logger import logger
from newsdigest.core.stock_utils import normalize_symbol
from newsdigest.models.datatypes import MARKET, AnalysisResult, Sentiment, StockIdentity
from newsdigest.providers.base import Analyzer

EMPTY_CONTENT_SUMMARY = "No news content available"

SYSTEM_PROMPT = (
    "You are a professional financial analyst who specialises in judging how "
    "news affects a company's stock."
)

NEWS_ANALYSIS_PROMPT = """Analyse whether the following news is positive, neutral or negative for {stock_name} ({stock_symbol}) stock.

News content:
{news_content}

Consider:
1. What is the core event (product launch, earnings, management change, regulation, M&A, litigation, macro factors)?
2. How could it affect short- and long-term financial performance (revenue, profit, market share, costs, growth)?
3. Does it meet, beat or miss market expectations?
4. Does it reflect a material change in the company's fundamentals?
5. How common is it in the industry, and does it shift the competitive landscape?
6. How are investors and analysts likely to read it?
7. Are there factors that dampen or amplify the impact (reputation, market mood, certainty of the event)?

Answer in exactly this format:
Summary: [news summary, at most 200 words]
Impact: [Good/Neutral/Bad]"""

STOCK_INFO_SYSTEM_PROMPT = (
    "You are a financial assistant that extracts stock information from articles: "
    "the ticker symbol and the company name. If several companies appear, return "
    "only the most relevant one, not a list."
)

STOCK_INFO_PROMPT = """Extract the stock ticker and company name from the article below.
If they are not stated explicitly, infer them from context. If you really cannot tell, return empty strings.

Article title: {article_title}

Article content:
{article_content}

Return JSON in this format:
{{
  "symbol": "ticker, e.g. AAPL",
  "company": "company name, e.g. Apple Inc."
}}
Tickers may appear as NYSE:SMRT or NASDAQ:AAPL; return only the part after the colon."""

# ── response parsing ──────────────────────────────────────────────────────────

_SUMMARY_PATTERN = re.compile(
    r"(?:摘要|Summary)\s*[：:]\s*(.+?)(?=\n\s*[*#]*\s*(?:影响|Impact)\s*[：:]|$)",
    re.DOTALL | re.IGNORECASE,
)
_SENTIMENT_PATTERN = re.compile(
    r"(?:影响|Impact)\s*[：:]\s*[*\[]*\s*"
    r"(好|中立|坏|正面|中性|负面|good|neutral|bad|positive|negative)",
    re.IGNORECASE,
)

_LABEL_TO_SENTIMENT = {
    "好": Sentiment.GOOD, "正面": Sentiment.GOOD,
    "good": Sentiment.GOOD, "positive": Sentiment.GOOD,
    "坏": Sentiment.BAD, "负面": Sentiment.BAD,
    "bad": Sentiment.BAD, "negative": Sentiment.BAD,
    "中立": Sentiment.NEUTRAL, "中性": Sentiment.NEUTRAL,
    "neutral": Sentiment.NEUTRAL,
}

POSITIVE_KEYWORDS = ("正面", "积极", "利好", "positive", "bullish")
NEGATIVE_KEYWORDS = ("负面", "消极", "利空", "negative", "bearish")


def extract_summary(text: str) -> str:
    match = _SUMMARY_PATTERN.search(text)
    if match:
        return match.group(1).strip().strip("*").strip()
    return text.strip()


def extract_sentiment(text: str, fallback: str = "keywords") -> Sentiment:
    match = _SENTIMENT_PATTERN.search(text)
    if match:
        return _LABEL_TO_SENTIMENT[match.group(1).lower()]

    if fallback == "strict":
        return Sentiment.UNKNOWN

    lowered = text.lower()
    if any(word in lowered for word in POSITIVE_KEYWORDS):
        return Sentiment.GOOD
    if any(word in lowered for word in NEGATIVE_KEYWORDS):
        return Sentiment.BAD
    return Sentiment.NEUTRAL


def parse_analysis(text: str, fallback: str = "keywords") -> AnalysisResult:
    """Parse a free-text model response into an :class:`AnalysisResult`."""
    return AnalysisResult(
        summary=extract_summary(text),
        sentiment=extract_sentiment(text, fallback),
    )


_SYMBOL_FIELD = re.compile(r'"symbol"\s*:\s*"([^"]*)"')
_COMPANY_FIELD = re.compile(r'"company"\s*:\s*"([^"]*)"')


def parse_stock_info(text: str) -> StockIdentity:
    """Parse ``{"symbol": ..., "company": ...}``; regex fallback; ``Market`` per missing field."""
    symbol: Optional[str] = None
    company: Optional[str] = None
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            symbol = _string_or_none(data.get("symbol"))
            company = _string_or_none(data.get("company"))
    except (TypeError, ValueError):
        logger.warning("LLMAnalyzer: stock info response is not JSON — trying regex")
        symbol_match = _SYMBOL_FIELD.search(text or "")
        company_match = _COMPANY_FIELD.search(text or "")
        symbol = symbol_match.group(1) if symbol_match else None
        company = company_match.group(1) if company_match else None

    return StockIdentity(
        symbol=normalize_symbol(symbol),
        name=(company or "").strip() or MARKET,
    )


def _string_or_none(value) -> Optional[str]:
    # lists, numbers and nested objects count as missing
    return value if isinstance(value, str) else None


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


# ── Analyzer ──────────────────────────────────────────────────────────────────

class LLMAnalyzer(Analyzer):
    """Analyzer backed by an OpenAI-compatible chat completions endpoint.

    The client is built lazily on first use so constructing the analyzer
    never touches the network.

    Args:
        settings: Resolved analyzer settings (provider, key, model, limits).
        client: Pre-built ``OpenAI`` client, mainly for tests.
    """

    def __init__(self, settings: AnalyzerSettings, client: Optional[OpenAI] = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            logger.info(
                f"LLMAnalyzer: provider={self.settings.provider} model={self.settings.model} "
                f"base_url={self.settings.base_url}"
            )
            self._client = OpenAI(api_key=self.settings.api_key, base_url=self.settings.base_url)
        return self._client

    def analyze(self, text: str, stock: StockIdentity) -> AnalysisResult:
        if not text or not text.strip():
            logger.info("LLMAnalyzer: empty content — returning Neutral default")
            return AnalysisResult(summary=EMPTY_CONTENT_SUMMARY, sentiment=Sentiment.NEUTRAL)

        prompt = NEWS_ANALYSIS_PROMPT.format(
            stock_name=stock.name,
            stock_symbol=stock.symbol,
            news_content=truncate(text, self.settings.max_content_length),
        )
        raw = self._complete(SYSTEM_PROMPT, prompt)
        result = parse_analysis(raw, self.settings.sentiment_fallback)
        logger.info(
            f"LLMAnalyzer: [{stock.symbol}] sentiment={result.sentiment.value} "
            f"summary={result.summary[:60]!r}"
        )
        return result

    def extract_stock_info(self, text: str, title: str) -> StockIdentity:
        if not text or not text.strip():
            return StockIdentity()

        prompt = STOCK_INFO_PROMPT.format(
            article_title=title,
            article_content=truncate(text, self.settings.max_content_length),
        )
        try:
            raw = self._complete(STOCK_INFO_SYSTEM_PROMPT, prompt, json_mode=True)
        except AnalysisError as exc:
            logger.warning(f"LLMAnalyzer: stock info extraction failed: {exc}")
            return StockIdentity()
        return parse_stock_info(raw)

    def _complete(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self.client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
                **kwargs,
            )
        except OpenAIError as exc:
            logger.error(f"LLMAnalyzer: {self.settings.provider} API call failed: {exc}")
            raise AnalysisError(f"{self.settings.provider} API call failed: {exc}", exc) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AnalysisError(f"{self.settings.provider} returned an empty response")
        return content
