import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ..config.settings import (
    DATA_DIR,
    INDEX_URL,
    MAX_PAGES_PER_CATEGORY,
    POPULARITY_THRESHOLD,
)
from ..config.tuning import ENRICH_POLICY, RECOVERY_POLICY
from ..errors import SnapshotError
from ..ingestion.orchestrator import (
    run_crawl_stage,
    run_enrich_stage,
    run_recovery_stage,
)
from ..utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}")
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}")
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def _add_retry_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--concurrency', type=_positive_int, default=None,
                        help='Records fetched at once (batch size)')
    parser.add_argument('--max-attempts', type=_positive_int, default=None,
                        help='Total attempts per record before giving up')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='appharvest',
        description='App marketplace harvester: crawl categories, enrich launch dates',
    )
    parser.add_argument('--data-dir', type=Path, default=DATA_DIR,
                        help='Directory holding the JSON snapshots')
    parser.add_argument('--headful', action='store_true',
                        help='Show the browser window')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')

    sub = parser.add_subparsers(dest='command')

    crawl = sub.add_parser('crawl', help='Discover categories and crawl listings')
    crawl.add_argument('--index-url', default=INDEX_URL)
    crawl.add_argument('--max-pages', type=_positive_int, default=MAX_PAGES_PER_CATEGORY)
    crawl.add_argument('--threshold', type=_non_negative_int, default=POPULARITY_THRESHOLD,
                       help='Keep apps with strictly more reviews than this')

    enrich = sub.add_parser('enrich', help='Fetch launch dates for topApps.json')
    _add_retry_args(enrich)

    recover = sub.add_parser('recover', help='Retry records still missing a launch date')
    _add_retry_args(recover)

    run = sub.add_parser('run', help='crawl followed by enrich')
    run.add_argument('--index-url', default=INDEX_URL)
    run.add_argument('--max-pages', type=_positive_int, default=MAX_PAGES_PER_CATEGORY)
    run.add_argument('--threshold', type=_non_negative_int, default=POPULARITY_THRESHOLD)
    _add_retry_args(run)

    return parser


async def _crawl(args) -> None:
    await run_crawl_stage(
        data_dir=args.data_dir,
        index_url=args.index_url,
        max_pages=args.max_pages,
        threshold=args.threshold,
        headless=not args.headful,
    )


async def _enrich(args) -> None:
    policy = ENRICH_POLICY.with_overrides(args.concurrency, args.max_attempts)
    await run_enrich_stage(data_dir=args.data_dir, policy=policy, headless=not args.headful)


async def _recover(args) -> None:
    policy = RECOVERY_POLICY.with_overrides(args.concurrency, args.max_attempts)
    await run_recovery_stage(data_dir=args.data_dir, policy=policy, headless=not args.headful)


async def _run(args) -> None:
    await _crawl(args)
    await _enrich(args)


COMMANDS = {
    'crawl': _crawl,
    'enrich': _enrich,
    'recover': _recover,
    'run': _run,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        setup_logging(level=logging.DEBUG)

    if args.command is None:
        parser.print_help()
        return 2

    try:
        asyncio.run(COMMANDS[args.command](args))
    except SnapshotError as e:
        logger.error("%s", e)
        return 1
    return 0
