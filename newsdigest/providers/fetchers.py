"""PageFetcher — raw HTML retrieval through an ordered list of transport strategies.

Strategies (default order, configurable via ``fetch.strategies``):
  1. ``http``      — requests session with a desktop browser header set.
  2. ``curl``      — external ``curl`` process writing to a unique temp file.
  3. ``yahoo_api`` — Yahoo Finance internal content API (Yahoo URLs only).

Each strategy raises :class:`StrategyError` on failure and the next one is
tried; an unexpected exception from a strategy is logged and treated the
same way. When all fail, ``fetch`` returns a :class:`FetchFailure` instead of
raising, so the orchestrator can report a structured skip.
"""

import html
import http.client
import re
import subprocess
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter

from newsdigest.core.config import FetchSettings
from newsdigest.core.errors import StrategyError
from newsdigest.core.logger import logger
from newsdigest.models.datatypes import FetchFailure, FetchResult, FetchSuccess, hostname_of
from newsdigest.providers.base import FetchStrategy
from newsdigest.providers.selectors import YAHOO_CONTENT_API, YAHOO_FINANCE

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_HEADERS: Dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="120"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

RETRIEVABLE_STATUS_CEILING = 500  # 403/404 pages are still parsed


# ── Strategy 1: requests ──────────────────────────────────────────────────────

class HttpClientStrategy(FetchStrategy):
    """GET with a realistic browser header set over a keep-alive session.

    Building the strategy has no global effect. The ``http.client`` header
    limit is raised once, by :meth:`PageFetcher.from_settings`.
    """

    name = "http"

    def __init__(
        self,
        timeout_seconds: int = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.session = session or _keepalive_session()

    def attempt(self, url: str) -> Tuple[str, int | None]:
        try:
            resp = self.session.get(url, headers=BROWSER_HEADERS, timeout=self.timeout_seconds)
        except (requests.RequestException, http.client.HTTPException) as exc:
            raise StrategyError(self.name, f"request failed: {exc}") from exc

        if resp.status_code >= RETRIEVABLE_STATUS_CEILING:
            raise StrategyError(self.name, f"HTTP {resp.status_code}")
        if resp.status_code != 200:
            logger.warning(f"PageFetcher[http]: HTTP {resp.status_code} for {url} — parsing anyway")
        return resp.text, resp.status_code


def raise_header_limit(max_header_count: int) -> None:
    """Raise ``http.client``'s response-header cap (default 100) for the whole process.

    Some aggregator pages emit more headers than the default allows. The limit
    is never lowered.
    """
    if http.client._MAXHEADERS < max_header_count:
        logger.info(f"PageFetcher: raising http.client header limit to {max_header_count}")
        http.client._MAXHEADERS = max_header_count


def _keepalive_session() -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


# ── Strategy 2: curl ──────────────────────────────────────────────────────────

class CurlStrategy(FetchStrategy):
    """Download the page with an external ``curl`` process.

    Output goes to ``temp_content_<timestamp>.html`` inside ``temp_dir`` and is
    deleted on every path, including read failures.
    """

    name = "curl"

    def __init__(
        self,
        temp_dir: str = ".",
        curl_binary: str = "curl",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.temp_dir = Path(temp_dir)
        self.curl_binary = curl_binary
        self._run = runner

    def temp_path(self) -> Path:
        return self.temp_dir / f"temp_content_{time.time_ns()}.html"

    def attempt(self, url: str) -> Tuple[str, int | None]:
        temp_file = self.temp_path()
        command = [self.curl_binary, "-s", "-L", "-A", USER_AGENT, url, "-o", str(temp_file)]
        try:
            try:
                self.temp_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StrategyError(self.name, f"temp dir unusable: {exc}") from exc
            try:
                proc = self._run(command, capture_output=True, text=True, check=False)
            except OSError as exc:
                raise StrategyError(self.name, f"could not start curl: {exc}") from exc
            if proc.returncode != 0:
                raise StrategyError(
                    self.name, f"exit code {proc.returncode}: {(proc.stderr or '').strip()[:200]}"
                )
            try:
                content = temp_file.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                raise StrategyError(self.name, f"temp file unreadable: {exc}") from exc
        finally:
            _remove_quietly(temp_file)

        if not content.strip():
            raise StrategyError(self.name, "empty response body")
        return content, None


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning(f"PageFetcher[curl]: could not remove temp file {path}: {exc}")


# ── Strategy 3: Yahoo Finance content API ─────────────────────────────────────

_ARTICLE_ID = re.compile(r"/([^/]+)\.html")


def yahoo_article_id(url: str) -> Optional[str]:
    """``https://finance.yahoo.com/news/foo-bar-123.html`` → ``"foo-bar-123"``."""
    match = _ARTICLE_ID.search(url)
    return match.group(1) if match else None


class YahooContentApiStrategy(FetchStrategy):
    """Call Yahoo's internal JSON content endpoint and render it as minimal HTML.

    The synthesized document puts the body inside ``.caas-body`` so the
    Yahoo site rule in the extractor applies unchanged.
    """

    name = "yahoo_api"

    def __init__(self, timeout_seconds: int = 60, session: Optional[requests.Session] = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def applies_to(self, url: str) -> bool:
        return YAHOO_FINANCE.matches(hostname_of(url))

    def attempt(self, url: str) -> Tuple[str, int | None]:
        article_id = yahoo_article_id(url)
        if not article_id:
            raise StrategyError(self.name, "no article id in URL")

        api_url = YAHOO_CONTENT_API.format(article_id=article_id)
        logger.info(f"PageFetcher[yahoo_api]: {api_url}")
        try:
            resp = self.session.get(
                api_url,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise StrategyError(self.name, f"request failed: {exc}") from exc
        if resp.status_code != 200:
            raise StrategyError(self.name, f"HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise StrategyError(self.name, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict) or not (data.get("body") or data.get("summary")):
            raise StrategyError(self.name, "response has neither body nor summary")
        return render_content_api_html(data), resp.status_code


def render_content_api_html(data: dict) -> str:
    """Map a content-API payload (title/body/summary/pubtime) into an HTML document."""
    title = html.escape(data.get("title") or "")
    if data.get("body"):
        body = data["body"]
    else:
        body = f"<p>{html.escape(data.get('summary') or '')}</p>"

    published = _pubtime_iso(data.get("pubtime"))
    time_tag = f'<time datetime="{html.escape(published)}"></time>' if published else ""

    return (
        f"<html><head><title>{title}</title></head><body>"
        f"{time_tag}<div class=\"caas-body\">{body}</div>"
        f"</body></html>"
    )


def _pubtime_iso(pubtime) -> Optional[str]:
    """Epoch seconds → ISO-8601; a non-numeric string is passed through for the extractor to parse."""
    if not pubtime:
        return None
    try:
        return datetime.fromtimestamp(int(pubtime), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        if isinstance(pubtime, str):
            return pubtime.strip()
        logger.debug(f"PageFetcher[yahoo_api]: ignoring unusable pubtime {pubtime!r}")
        return None


# ── PageFetcher ───────────────────────────────────────────────────────────────

STRATEGY_FACTORIES: Dict[str, Callable[[FetchSettings], FetchStrategy]] = {
    "http": lambda s: HttpClientStrategy(s.timeout_seconds),
    "curl": lambda s: CurlStrategy(s.temp_dir, s.curl_binary),
    "yahoo_api": lambda s: YahooContentApiStrategy(s.timeout_seconds),
}


class PageFetcher:
    """Evaluates an ordered list of strategies until one returns HTML.

    Args:
        strategies: Strategies in the order they are attempted.
    """

    def __init__(self, strategies: Sequence[FetchStrategy]) -> None:
        if not strategies:
            raise ValueError("PageFetcher needs at least one strategy")
        self.strategies = list(strategies)

    @classmethod
    def from_settings(cls, settings: FetchSettings) -> "PageFetcher":
        unknown = [name for name in settings.strategies if name not in STRATEGY_FACTORIES]
        if unknown:
            raise ValueError(f"Unknown fetch strategies: {unknown}")
        if "http" in settings.strategies:
            raise_header_limit(settings.max_header_count)
        return cls([STRATEGY_FACTORIES[name](settings) for name in settings.strategies])

    def fetch(self, url: str) -> FetchResult:
        """Return the first successful strategy's HTML, or a FetchFailure."""
        errors: List[str] = []
        for strategy in self.strategies:
            if not strategy.applies_to(url):
                continue
            logger.info(f"PageFetcher: trying '{strategy.name}' for {url}")
            try:
                raw_html, status = strategy.attempt(url)
            except StrategyError as exc:
                logger.warning(f"PageFetcher: {exc} — {url}")
                errors.append(str(exc))
                continue
            except Exception as exc:
                logger.error(f"PageFetcher: '{strategy.name}' raised unexpectedly for {url}: {exc}", exc_info=True)
                errors.append(str(StrategyError(strategy.name, f"unexpected {type(exc).__name__}: {exc}")))
                continue
            logger.info(f"PageFetcher: '{strategy.name}' succeeded for {url} ({len(raw_html)} chars)")
            return FetchSuccess(html=raw_html, strategy=strategy.name, status_code=status)

        reason = "; ".join(errors) or "no strategy applies to this URL"
        logger.error(f"PageFetcher: all strategies failed for {url}: {reason}")
        return FetchFailure(reason=reason)
