"""News analysis pipeline entry point.

Usage:
    python run_pipeline.py [--config config.yaml]

Loads config.yaml, checks required environment variables, runs PipelineEngine
over every configured stock, and reports success/failure to stdout and the
pipeline log.
"""

import argparse
import os
import sys

from dotenv import load_dotenv

load_dotenv()  # must precede newsdigest imports so env vars are available at module load

from newsdigest.core.config import load_config, missing_requirements, resolve_settings  # noqa: E402
from newsdigest.core.logger import logger  # noqa: E402
from newsdigest.models.datatypes import STATUS_ANALYZED, STATUS_ERROR  # noqa: E402
from newsdigest.pipeline.engine import REPORT_FILENAME, PipelineEngine  # noqa: E402


def main(argv=None) -> int:
    """Run the pipeline. Returns 0 on success, 1 on failure."""
    parser = argparse.ArgumentParser(description="Fetch, analyse and store financial news")
    parser.add_argument("--config", default="config.yaml", help="Path to the YAML config file")
    args = parser.parse_args(argv)

    try:
        settings = resolve_settings(load_config(args.config))
    except (FileNotFoundError, ValueError) as exc:
        logger.error(f"run_pipeline: failed to load config: {exc}")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    missing = missing_requirements(settings)
    if missing:
        logger.error(f"run_pipeline: missing environment variables: {', '.join(missing)}")
        print("ERROR: missing required environment variables:", file=sys.stderr)
        for name in missing:
            print(f"  - {name}", file=sys.stderr)
        return 1

    try:
        rows = PipelineEngine(settings).run()
    except Exception as exc:
        logger.error(f"run_pipeline: PipelineEngine raised: {exc}", exc_info=True)
        print(f"ERROR: pipeline failed — {exc}", file=sys.stderr)
        return 1

    analyzed = sum(1 for _, outcome in rows if outcome.status == STATUS_ANALYZED)
    errors = sum(1 for _, outcome in rows if outcome.status == STATUS_ERROR)
    csv_path = os.path.join(settings.pipeline.output_dir, REPORT_FILENAME)
    print(f"SUCCESS: {len(rows)} URLs processed ({analyzed} analyzed, {errors} errors) → {csv_path}")
    logger.info(f"run_pipeline: completed — {len(rows)} rows → {csv_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
