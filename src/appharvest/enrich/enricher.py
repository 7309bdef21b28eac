"""Concurrent, retrying launch-date enrichment of listing detail pages.

Records run in fixed-size batches: everything inside a batch is awaited
together, and the next batch starts only once every record of the current
one reached a terminal state.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..config.tuning import ENRICH_POLICY, RetryPolicy
from ..errors import (
    ExtractionMiss,
    RateLimited,
    ResourceNotFound,
    RetriableError,
    RetryBudgetExhausted,
)
from ..models import EnrichedRecord
from ..parsing.launch_date import (
    NOT_FOUND_STATUS,
    LaunchDateExtractor,
    extract_launch_date,
    looks_not_found,
    looks_rate_limited,
)
from ..utils.logging import get_logger
from .states import EnrichmentTask, RecordState, state_for

logger = get_logger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]
BatchCallback = Callable[[int, List[EnrichedRecord]], Awaitable[None]]


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class DetailEnricher:
    def __init__(
        self,
        session,
        policy: RetryPolicy = ENRICH_POLICY,
        extractor: LaunchDateExtractor = extract_launch_date,
        sleep: SleepFn = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session = session
        self.policy = policy
        self.extractor = extractor
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.tasks: List[EnrichmentTask] = []

    async def enrich(
        self,
        records: Sequence[EnrichedRecord],
        on_batch_complete: Optional[BatchCallback] = None,
    ) -> List[EnrichedRecord]:
        """Enrich ``records`` in place; returns them in completion order."""
        self.tasks = [EnrichmentTask(record=r) for r in records]
        completed: List[EnrichedRecord] = []
        batches = chunked(self.tasks, self.policy.concurrency)

        for index, batch in enumerate(batches, 1):
            await asyncio.gather(*(self._run(task, completed) for task in batch))
            logger.info(
                "Batch %d/%d done (%d/%d records).",
                index, len(batches), len(completed), len(self.tasks),
            )
            if on_batch_complete is not None:
                await on_batch_complete(index, [task.record for task in batch])

        return completed

    async def _run(self, task: EnrichmentTask, completed: List[EnrichedRecord]) -> None:
        try:
            async with self.session.open_page(block_resources=True) as fetcher:
                await self._drive(task, fetcher)
        except Exception as exc:
            if not task.terminal:
                self._fail(task, RecordState.FATAL, str(exc) or type(exc).__name__)
                logger.error("  x [%s] Fatal Error: %s", task.record.name, exc)
        completed.append(task.record)

    async def _drive(self, task: EnrichmentTask, fetcher) -> None:
        record = task.record
        while True:
            await self.sleep(self.policy.pre_request_delay(self.rng))
            task.state = RecordState.FETCHING
            task.attempts += 1
            try:
                launch_date = await self._attempt(record, fetcher)
            except ResourceNotFound as exc:
                self._fail(task, RecordState.NOT_FOUND, exc.reason)
                logger.info("  - [%s] App not found (404)", record.name)
                return
            except RetriableError as exc:
                task.state = state_for(exc)
                task.last_reason = exc.reason
                if task.attempts >= self.policy.max_attempts:
                    self._fail(task, RecordState.EXHAUSTED, RetryBudgetExhausted.reason)
                    logger.error(
                        "  x [%s] Failed after %d attempts (last: %s).",
                        record.name, task.attempts, task.last_reason,
                    )
                    return
                delay = self.policy.backoff_for(task.attempts, self.rng)
                task.backoffs.append(delay)
                logger.info(
                    "    ! [%s] Retry reason: %s. Waiting %.1fs...",
                    record.name, exc.reason, delay,
                )
                await self.sleep(delay)
                continue
            except Exception as exc:
                self._fail(task, RecordState.FATAL, str(exc) or type(exc).__name__)
                logger.error("  x [%s] Fatal Error: %s", record.name, exc)
                return

            task.state = RecordState.EXTRACTED
            record.mark_extracted(launch_date)
            logger.info("  + [%s] Launched: %s", record.name, launch_date)
            return

    async def _attempt(self, record: EnrichedRecord, fetcher) -> str:
        snapshot = await fetcher.fetch(record.url, timeout_ms=self.policy.navigation_timeout_ms)

        if looks_rate_limited(snapshot.status, snapshot.title, snapshot.html):
            raise RateLimited(f"rate limited (status={snapshot.status})")
        if snapshot.status == NOT_FOUND_STATUS:
            raise ResourceNotFound(record.url)

        launch_date = self.extractor(snapshot.html)
        if launch_date:
            return launch_date

        if looks_not_found(snapshot.status, snapshot.title):
            raise ResourceNotFound(record.url)
        raise ExtractionMiss(record.url)

    @staticmethod
    def _fail(task: EnrichmentTask, state: RecordState, error: str) -> None:
        task.state = state
        task.record.mark_failed(error)
