"""Second-chance enrichment for records still missing their launch date.

The snapshot on disk is the unit of progress: records are updated in place
and the whole file is rewritten after every batch, so an interrupted run
loses at most one batch and can simply be started again.
"""

from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..browser.session import BrowserSession
from ..config.tuning import RECOVERY_POLICY, RetryPolicy
from ..models import EnrichedRecord
from ..parsing.launch_date import LaunchDateExtractor, extract_launch_date
from ..storage.snapshot import load_enriched, save_snapshot
from ..utils.logging import get_logger
from .enricher import DetailEnricher, SleepFn

logger = get_logger(__name__)


def missing_launch_dates(records: List[EnrichedRecord]) -> List[EnrichedRecord]:
    return [r for r in records if r.needs_enrichment]


async def run_recovery(
    path: Union[str, Path],
    policy: RetryPolicy = RECOVERY_POLICY,
    session_factory: Callable[..., BrowserSession] = BrowserSession,
    headless: bool = True,
    extractor: LaunchDateExtractor = extract_launch_date,
    sleep: SleepFn = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> List[EnrichedRecord]:
    """Retry every record of the snapshot at ``path`` whose launch date is null.

    Raises ``SnapshotMissingError`` before any work if ``path`` does not exist.
    Returns the full record list, in snapshot order.
    """
    records = load_enriched(path)
    missing = missing_launch_dates(records)
    logger.info("Total apps: %d", len(records))
    logger.info("Missing launch date: %d", len(missing))

    if not missing:
        logger.info("No missing apps to retry.")
        return records

    processed = 0

    async def checkpoint(index: int, batch: List[EnrichedRecord]) -> None:
        nonlocal processed
        processed += len(batch)
        save_snapshot(path, records)
        logger.info("Processed batch %d. Progress: %d remaining.", index, len(missing) - processed)

    async with session_factory(headless=headless) as session:
        enricher = DetailEnricher(session, policy=policy, extractor=extractor, sleep=sleep, rng=rng)
        await enricher.enrich(missing, on_batch_complete=checkpoint)

    recovered = sum(1 for r in missing if r.launch_date)
    logger.info("Recovery complete: %d of %d recovered.", recovered, len(missing))
    return records
