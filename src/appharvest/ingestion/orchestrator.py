"""Pipeline stages: crawl -> enrich -> (later) recover.

Each stage owns the collection it builds, persists it, and returns it. Input
snapshots are loaded before the browser starts, so a missing file stops the
stage before any network work.
"""

from __future__ import annotations

import asyncio
import random
from collections import Counter
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..browser.session import BrowserSession
from ..config.settings import (
    DATA_DIR,
    INDEX_URL,
    MAX_PAGES_PER_CATEGORY,
    POPULARITY_THRESHOLD,
    snapshot_paths,
)
from ..config.tuning import ENRICH_POLICY, RECOVERY_POLICY, RetryPolicy
from ..crawl.categories import discover_categories
from ..crawl.dedupe import filter_popular
from ..crawl.paginate import CategoryCrawler
from ..enrich.enricher import DetailEnricher, SleepFn
from ..enrich.recovery import run_recovery
from ..errors import MAX_RETRIES_ERROR, NOT_FOUND_ERROR
from ..models import EnrichedRecord, ListingRecord
from ..parsing.launch_date import LaunchDateExtractor, extract_launch_date
from ..storage.snapshot import load_listings, save_snapshot
from ..utils.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[..., BrowserSession]


def summarize(records: Iterable[EnrichedRecord]) -> Dict[str, int]:
    """Count terminal outcomes: launched / not_found / exhausted / failed."""
    counts: Counter = Counter()
    for record in records:
        if record.launch_date:
            counts["launched"] += 1
        elif record.error == NOT_FOUND_ERROR:
            counts["not_found"] += 1
        elif record.error == MAX_RETRIES_ERROR:
            counts["exhausted"] += 1
        else:
            counts["failed"] += 1
    return {key: counts.get(key, 0) for key in ("launched", "not_found", "exhausted", "failed")}


def _log_summary(label: str, records: List[EnrichedRecord]) -> None:
    stats = summarize(records)
    logger.info(
        "%s: %d records, %d launched, %d not found, %d exhausted, %d failed",
        label, len(records), stats["launched"], stats["not_found"],
        stats["exhausted"], stats["failed"],
    )


async def run_crawl_stage(
    data_dir: Union[str, Path] = DATA_DIR,
    index_url: str = INDEX_URL,
    max_pages: int = MAX_PAGES_PER_CATEGORY,
    threshold: int = POPULARITY_THRESHOLD,
    headless: bool = True,
    session_factory: SessionFactory = BrowserSession,
) -> Tuple[List[ListingRecord], List[ListingRecord]]:
    """Discover categories, crawl them, write allApp.json and topApps.json."""
    paths = snapshot_paths(Path(data_dir))
    logger.info("Starting crawl...")

    async with session_factory(headless=headless) as session:
        async with session.open_page() as fetcher:
            categories = await discover_categories(fetcher, index_url)
            crawler = CategoryCrawler(fetcher, max_pages=max_pages)
            listings = await crawler.crawl(categories)

    save_snapshot(paths["all"], listings)
    top = filter_popular(listings, threshold)
    save_snapshot(paths["top"], top)
    logger.info("Popular apps (> %d reviews): %d of %d", threshold, len(top), len(listings))
    return listings, top


async def run_enrich_stage(
    data_dir: Union[str, Path] = DATA_DIR,
    policy: RetryPolicy = ENRICH_POLICY,
    headless: bool = True,
    session_factory: SessionFactory = BrowserSession,
    extractor: LaunchDateExtractor = extract_launch_date,
    sleep: SleepFn = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> List[EnrichedRecord]:
    """Enrich topApps.json and write the result to topAppsRecent.json."""
    paths = snapshot_paths(Path(data_dir))
    listings = load_listings(paths["top"])
    logger.info("Loaded %d apps to enrich.", len(listings))
    records = [EnrichedRecord.from_listing(listing) for listing in listings]

    enriched: List[EnrichedRecord] = []
    if records:
        async with session_factory(headless=headless) as session:
            enricher = DetailEnricher(session, policy=policy, extractor=extractor, sleep=sleep, rng=rng)
            enriched = await enricher.enrich(records)

    save_snapshot(paths["enriched"], enriched)
    _log_summary("Enrichment", enriched)
    return enriched


async def run_recovery_stage(
    data_dir: Union[str, Path] = DATA_DIR,
    policy: RetryPolicy = RECOVERY_POLICY,
    headless: bool = True,
    session_factory: SessionFactory = BrowserSession,
    extractor: LaunchDateExtractor = extract_launch_date,
    sleep: SleepFn = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> List[EnrichedRecord]:
    """Retry topAppsRecent.json records that still lack a launch date."""
    paths = snapshot_paths(Path(data_dir))
    records = await run_recovery(
        paths["enriched"],
        policy=policy,
        session_factory=session_factory,
        headless=headless,
        extractor=extractor,
        sleep=sleep,
        rng=rng,
    )
    _log_summary("Recovery", records)
    return records
