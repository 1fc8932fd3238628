"""
Debug dump — runs the PageFetcher chain and the extractor for one URL and
prints which strategy succeeded plus every extracted field. Nothing is
analysed or stored.

Run with:
    PYTHONPATH=. python scripts/dump_article.py https://finance.yahoo.com/news/....html
"""

import argparse
import json
import sys

from dotenv import load_dotenv

load_dotenv()

from newsdigest.core.config import load_config, resolve_settings  # noqa: E402
from newsdigest.models.datatypes import FetchFailure  # noqa: E402
from newsdigest.providers.extractor import build_article  # noqa: E402
from newsdigest.providers.fetchers import PageFetcher  # noqa: E402

DIVIDER = "=" * 70


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Fetch and extract one article without analysing it")
    parser.add_argument("url")
    parser.add_argument("--strategies", help="Comma-separated strategy order, e.g. curl,http")
    parser.add_argument("--config", default="config.yaml")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        config = {}
    if args.strategies:
        config = {**config, "fetch": {**(config.get("fetch") or {}), "strategies": args.strategies.split(",")}}
    settings = resolve_settings(config)

    result = PageFetcher.from_settings(settings.fetch).fetch(args.url)
    print(DIVIDER)
    if isinstance(result, FetchFailure):
        print(f"  FETCH FAILED: {result.reason}")
    else:
        print(f"  strategy={result.strategy} status={result.status_code} html_chars={len(result.html)}")
    print(DIVIDER)

    article = build_article(result, args.url)
    print(json.dumps(article.to_dict(), ensure_ascii=False, indent=2))
    return 1 if article.is_failure else 0


if __name__ == "__main__":
    sys.exit(main())
