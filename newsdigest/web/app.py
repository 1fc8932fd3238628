"""Flask service exposing the article workflow over JSON.

Endpoints:
    POST /api/articles/extract         {url}                 → title/symbol/company | skipped
    POST /api/articles/analyze         {url, stock}          → analysis | skipped
    POST /api/articles/analyze/force   {url, stock}          → analysis (no existence check)
    POST /api/articles/content         {url}                 → extracted article fields
    POST /api/articles/batch           {urls, stock?, force?} → per-URL results in input order
    GET  /api/health

Run locally with ``flask --app newsdigest.web.app run``.
"""

from functools import wraps
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from newsdigest.core.config import Settings, load_config, resolve_settings
from newsdigest.core.logger import logger
from newsdigest.models.datatypes import STATUS_ERROR, AnalysisOutcome, StockIdentity
from newsdigest.pipeline.orchestrator import AnalysisOrchestrator, build_orchestrator
from newsdigest.providers.analyzer import truncate

CONTENT_PREVIEW_CHARS = 300


def _error(message: str, status: int, error: Optional[str] = None, **extra: Any):
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return jsonify(body), status


def _json_errors(view):
    """Unhandled failures (store errors included) become a 500 JSON body."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except Exception as exc:
            logger.error(f"web: {request.path} failed: {exc}", exc_info=True)
            return _error("Request failed", 500, str(exc))
    return wrapper


def _require_url(payload: Dict[str, Any]) -> Optional[str]:
    url = payload.get("url")
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


def _parse_stock(payload: Dict[str, Any], required: bool) -> Tuple[Optional[StockIdentity], bool]:
    stock = payload.get("stock")
    if not stock:
        return (None, False) if required else (StockIdentity(), True)
    if not isinstance(stock, dict) or not stock.get("symbol") or not stock.get("name"):
        return None, False
    return StockIdentity(symbol=str(stock["symbol"]).strip(), name=str(stock["name"]).strip()), True


def _analysis_response(outcome: AnalysisOutcome):
    if outcome.skipped:
        return jsonify({
            "success": True,
            "message": "Article skipped",
            "skipped": True,
            "reason": outcome.reason,
        })
    if outcome.status == STATUS_ERROR:
        return _error(
            "Analysis failed", 500, outcome.error,
            analysisError=outcome.analysis_error,
        )
    return jsonify({
        "success": True,
        "message": "Analysis complete",
        "title": outcome.article.title,
        "url": outcome.article.url,
        "publishDate": outcome.article.publish_date.isoformat(),
        "summary": outcome.analysis.summary,
        "sentiment": outcome.analysis.sentiment.value,
    })


def _default_settings() -> Settings:
    try:
        config = load_config()
    except FileNotFoundError:
        config = {}
    settings = resolve_settings(config)
    settings.require()
    return settings


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[AnalysisOrchestrator] = None,
) -> Flask:
    """Build the Flask app.

    Args:
        settings: Resolved settings; loaded from config.yaml + environment if omitted.
        orchestrator: Pre-built orchestrator (tests); built from settings if omitted.

    Raises:
        ConfigError: Required environment variables are missing.
    """
    if orchestrator is None:
        orchestrator = build_orchestrator(settings or _default_settings())

    app = Flask(__name__)

    @app.get("/api/health")
    def health():
        return jsonify({"success": True, "status": "ok"})

    @app.post("/api/articles/extract")
    @_json_errors
    def extract():
        payload = request.get_json(silent=True) or {}
        url = _require_url(payload)
        if url is None:
            return _error("Missing article URL", 400)

        outcome = orchestrator.extract_stock_info_from_url(url)
        message = "Article skipped" if outcome.skipped else "Extraction complete"
        return jsonify({"success": True, "message": message, **outcome.to_dict()})

    def _analyze(force: bool):
        payload = request.get_json(silent=True) or {}
        url = _require_url(payload)
        if url is None:
            return _error("Missing article URL", 400)
        stock, valid = _parse_stock(payload, required=True)
        if not valid:
            return _error("Missing stock information (symbol and name)", 400)

        if force:
            outcome = orchestrator.force_analyze(url, stock)
        else:
            outcome = orchestrator.analyze_article_from_url(url, stock)
        return _analysis_response(outcome)

    @app.post("/api/articles/analyze")
    @_json_errors
    def analyze():
        return _analyze(force=False)

    @app.post("/api/articles/analyze/force")
    @_json_errors
    def analyze_force():
        return _analyze(force=True)

    @app.post("/api/articles/content")
    @_json_errors
    def content():
        payload = request.get_json(silent=True) or {}
        url = _require_url(payload)
        if url is None:
            return _error("Missing article URL", 400)

        article = orchestrator.fetch_article(url)
        data = article.to_dict()
        data["contentPreview"] = truncate(article.content, CONTENT_PREVIEW_CHARS)
        data["contentLength"] = len(article.content)
        return jsonify({"success": True, "data": data})

    @app.post("/api/articles/batch")
    @_json_errors
    def batch():
        payload = request.get_json(silent=True) or {}
        urls = payload.get("urls")
        if not isinstance(urls, list) or not urls or not all(isinstance(u, str) and u.strip() for u in urls):
            return _error("'urls' must be a non-empty list of URLs", 400)
        stock, valid = _parse_stock(payload, required=False)
        if not valid:
            return _error("Invalid stock information (symbol and name)", 400)

        outcomes = orchestrator.analyze_batch(
            [u.strip() for u in urls], stock, force=bool(payload.get("force")),
        )
        return jsonify({
            "success": True,
            "message": f"Processed {len(outcomes)} of {len(urls)} URLs",
            "results": [outcome.to_dict() for outcome in outcomes],
        })

    return app
