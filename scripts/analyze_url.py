"""
Analyse a single article URL and store the result.

Stock identity resolution:
  --symbol and --name  → used as given
  --symbol only        → company name looked up via yfinance
  neither              → symbol/company extracted from the article by the Analyzer

Run with:
    PYTHONPATH=. python scripts/analyze_url.py https://finance.yahoo.com/news/....html --symbol AAPL
    PYTHONPATH=. python scripts/analyze_url.py URL --force
"""

import argparse
import json
import sys

from dotenv import load_dotenv

load_dotenv()

from newsdigest.core.config import load_config, missing_requirements, resolve_settings  # noqa: E402
from newsdigest.core.logger import logger  # noqa: E402
from newsdigest.core.stock_utils import get_long_name, normalize_symbol  # noqa: E402
from newsdigest.models.datatypes import StockIdentity  # noqa: E402
from newsdigest.pipeline.orchestrator import build_orchestrator  # noqa: E402


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Analyse one news article URL")
    parser.add_argument("url")
    parser.add_argument("--symbol", help="Ticker, e.g. AAPL")
    parser.add_argument("--name", help="Company name, e.g. 'Apple Inc.'")
    parser.add_argument("--force", action="store_true", help="Re-analyse even if already stored")
    parser.add_argument("--config", default="config.yaml")
    args = parser.parse_args(argv)

    try:
        settings = resolve_settings(load_config(args.config))
    except FileNotFoundError:
        settings = resolve_settings({})
    missing = missing_requirements(settings)
    if missing:
        print(f"ERROR: missing required environment variables: {', '.join(missing)}", file=sys.stderr)
        return 1

    orchestrator = build_orchestrator(settings)

    try:
        if args.symbol:
            symbol = normalize_symbol(args.symbol)
            stock = StockIdentity(symbol, args.name or get_long_name(symbol, settings.pipeline.output_dir))
        elif args.force:
            article = orchestrator.fetch_article(args.url)
            stock = StockIdentity() if article.is_failure else \
                orchestrator.analyzer.extract_stock_info(article.content, article.title)
            print(f"Identified stock: {stock.symbol} ({stock.name})")
        else:
            info = orchestrator.extract_stock_info_from_url(args.url)
            if info.skipped:
                print(json.dumps(info.to_dict(), ensure_ascii=False, indent=2))
                return 0
            stock = info.stock
            print(f"Identified stock: {stock.symbol} ({stock.name})")

        if args.force:
            outcome = orchestrator.force_analyze(args.url, stock)
        else:
            outcome = orchestrator.analyze_article_from_url(args.url, stock)
    except Exception as exc:
        logger.error(f"analyze_url: failed for {args.url}: {exc}", exc_info=True)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
    return 1 if outcome.error else 0


if __name__ == "__main__":
    sys.exit(main())
