"""
Scrape the Yahoo Finance stock-market-news topic page and analyse every
article not yet in the store, one at a time, under the generic ``Market``
identity.

Run with:
    PYTHONPATH=. python scripts/fetch_topic_news.py [--limit 10] [--delay 5]
"""

import argparse
import sys

from dotenv import load_dotenv

load_dotenv()

from newsdigest.core.config import load_config, missing_requirements, resolve_settings  # noqa: E402
from newsdigest.core.errors import DiscoveryError  # noqa: E402
from newsdigest.core.logger import logger  # noqa: E402
from newsdigest.models.datatypes import STATUS_ANALYZED, StockIdentity  # noqa: E402
from newsdigest.pipeline.orchestrator import build_orchestrator  # noqa: E402
from newsdigest.providers.news import YahooTopicPageProvider  # noqa: E402

DIVIDER = "=" * 70


def _print_progress(results) -> None:
    latest = results[-1]
    detail = latest.reason or latest.error or (latest.analysis.sentiment.value if latest.analysis else "")
    print(f"  [{len(results)}] {latest.status:<9} {detail:<16} {latest.url}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Analyse new articles from the Yahoo Finance topic page")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of new articles")
    parser.add_argument("--delay", type=float, default=None, help="Seconds between articles")
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
    topic = YahooTopicPageProvider(orchestrator.fetcher, settings.pipeline.topic_url)

    try:
        links = topic.fetch_links()
        new_links = orchestrator.filter_new_urls(links)
    except DiscoveryError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.error(f"fetch_topic_news: failed: {exc}", exc_info=True)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.limit is not None:
        new_links = new_links[: args.limit]

    print(DIVIDER)
    print(f"  {len(links)} links found, {len(new_links)} new")
    print(DIVIDER)
    if not new_links:
        return 0

    delay = settings.pipeline.delay_seconds if args.delay is None else args.delay
    results = orchestrator.analyze_batch(
        new_links, StockIdentity(), delay_seconds=delay, on_progress=_print_progress,
    )

    analyzed = sum(1 for r in results if r.status == STATUS_ANALYZED)
    print(DIVIDER)
    print(f"  Done: {analyzed}/{len(results)} analyzed")
    print(DIVIDER)
    return 0


if __name__ == "__main__":
    sys.exit(main())
