"""
Pollen collector entry point.

Usage:
    pollen-collector                  # Daily run: predictions + today's counts
    pollen-collector --full-history   # One-off backfill from the historical dataset

Exit codes:
    0  every branch succeeded
    1  at least one branch or pair failed (the others were still written)
    2  configuration error, nothing was attempted
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Optional, Sequence

from dotenv import load_dotenv

from .config import CollectorConfig, Config
from .db import ensure_schema
from .errors import ConfigurationError, PollenIngestionError
from .ingestion.pipeline import IngestionPipeline, RunReport
from .models.enums import CountSource, IngestionMode

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pollen-collector",
        description="Collect observed and predicted pollen counts into the pollen database.",
    )
    parser.add_argument(
        "--full-history",
        action="store_true",
        help="Backfill the full historical dataset instead of the daily run",
    )
    parser.add_argument(
        "--count-source",
        choices=[source.value for source in CountSource],
        help="Override COUNT_SOURCE for this run",
    )
    parser.add_argument(
        "--catch-up-days",
        type=int,
        help="Override CATCH_UP_DAYS for this run",
    )
    return parser


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, Config.log_level(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def load_config(args: argparse.Namespace) -> CollectorConfig:
    """Environment settings with command-line overrides applied."""
    config = CollectorConfig.from_env()
    overrides = {}
    if args.count_source:
        overrides["count_source"] = args.count_source
    if args.catch_up_days is not None:
        overrides["catch_up_days"] = args.catch_up_days
    if overrides:
        config = replace(config, **overrides)
    return config


async def run_collector(config: CollectorConfig, mode: IngestionMode) -> RunReport:
    """Run one pass and always close the adapters' HTTP clients."""
    pipeline = IngestionPipeline(config)
    try:
        return await pipeline.run(mode)
    finally:
        await pipeline.aclose()
        pipeline.repository.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    configure_logging()
    args = build_parser().parse_args(argv)
    mode = IngestionMode.FULL_HISTORY if args.full_history else IngestionMode.DAILY

    try:
        config = load_config(args)
        ensure_schema(config.database_path)
        logger.info(f"Collector starting in {mode.value} mode, database {config.database_path}")
        report = asyncio.run(run_collector(config, mode))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIGURATION_ERROR
    except PollenIngestionError as e:
        logger.error(f"Collector aborted: {e}")
        return EXIT_PARTIAL_FAILURE

    if not report.succeeded:
        failed = [branch.source_name for branch in report.branches if branch.failed]
        logger.error(f"Collector finished with failures in: {', '.join(failed)}")
        return EXIT_PARTIAL_FAILURE

    logger.info("Collector finished successfully")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
