"""Tests for the concurrent, retrying launch-date enricher."""

import asyncio
import logging
import random

import pytest

from appharvest.config.tuning import RetryPolicy
from appharvest.enrich.enricher import DetailEnricher, chunked
from appharvest.enrich.states import RETRIABLE_STATES, TERMINAL_STATES, RecordState, state_for
from appharvest.errors import (
    MAX_RETRIES_ERROR,
    NOT_FOUND_ERROR,
    ExtractionMiss,
    RateLimited,
    TransientNetwork,
)
from appharvest.models import EnrichedRecord

from conftest import FakeSession, RecordingSleep, detail_page, snap

POLICY = RetryPolicy(
    concurrency=2,
    max_attempts=3,
    pre_delay=(0.0, 0.0),
    backoff_unit=10.0,
    backoff_jitter=5.0,
)


def record(slug, name=None):
    return EnrichedRecord(name=name or slug, url=f"https://apps.shopify.com/{slug}", reviews=50)


def ok(url, launched="March 3, 2025"):
    return snap(url, detail_page(launched), title="App")


def rate_limited(url):
    return snap(url, "<html><body><h1>Too many requests</h1></body></html>", status=429, title="429")


def missing(url):
    return snap(url, detail_page(None), title="App")


def not_found(url):
    return snap(url, "<html><body>Gone</body></html>", status=200, title="404 Not Found")


def run(session, records, policy=POLICY, sleep=None, **kwargs):
    enricher = DetailEnricher(
        session,
        policy=policy,
        sleep=sleep or RecordingSleep(),
        rng=random.Random(7),
        **kwargs,
    )
    done = asyncio.run(enricher.enrich(records))
    return enricher, done


class TestChunked:
    def test_even_and_remainder(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert chunked([], 3) == []


class TestStateFor:
    def test_mapping(self):
        assert state_for(RateLimited()) is RecordState.RATE_LIMITED
        assert state_for(ExtractionMiss()) is RecordState.DATE_NOT_FOUND
        assert state_for(TransientNetwork()) is RecordState.TRANSIENT_ERROR
        assert state_for(RuntimeError()) is RecordState.FATAL

    def test_retriable_errors_map_to_retriable_states(self):
        for exc in (RateLimited(), ExtractionMiss(), TransientNetwork()):
            assert exc.retriable
            assert state_for(exc) in RETRIABLE_STATES
        assert not RETRIABLE_STATES & TERMINAL_STATES


# ============================================================================
# Outcomes
# ============================================================================
class TestEnrichOutcomes:
    def test_launch_date_extracted(self):
        rec = record("foo")
        session = FakeSession({rec.url: [ok(rec.url)]})
        enricher, done = run(session, [rec])

        assert done == [rec]
        assert rec.launch_date == "March 3, 2025"
        assert rec.error is None
        assert enricher.tasks[0].state is RecordState.EXTRACTED
        assert enricher.tasks[0].attempts == 1

    def test_rate_limited_twice_then_success(self):
        rec = record("foo")
        session = FakeSession({rec.url: [rate_limited(rec.url), rate_limited(rec.url), ok(rec.url)]})
        enricher, _ = run(session, [rec])

        task = enricher.tasks[0]
        assert rec.launch_date == "March 3, 2025"
        assert rec.error is None
        assert task.attempts == 3
        assert len(task.backoffs) == 2
        assert task.backoffs[1] >= task.backoffs[0]
        assert 10.0 <= task.backoffs[0] <= 15.0
        assert 20.0 <= task.backoffs[1] <= 25.0

    def test_not_found_terminates_without_retry(self):
        rec = record("gone")
        session = FakeSession({rec.url: [not_found(rec.url)]})
        sleep = RecordingSleep()
        enricher, _ = run(session, [rec], sleep=sleep)

        task = enricher.tasks[0]
        assert rec.launch_date is None
        assert rec.error == NOT_FOUND_ERROR
        assert task.state is RecordState.NOT_FOUND
        assert task.attempts == 1
        assert task.retries == 0
        # only the pre-request delay
        assert sleep.delays == [0.0]

    def test_not_found_status_code(self):
        rec = record("gone")
        session = FakeSession({rec.url: [snap(rec.url, "<body>x</body>", status=404, title="Shopify")]})
        run(session, [rec])
        assert rec.error == NOT_FOUND_ERROR

    def test_date_wins_over_not_found_title(self):
        rec = record("odd")
        session = FakeSession({rec.url: [snap(rec.url, detail_page("May 1, 2024"), title="404 app")]})
        run(session, [rec])
        assert rec.launch_date == "May 1, 2024"

    def test_exhaustion_after_max_attempts(self):
        rec = record("nodate")
        session = FakeSession({rec.url: [missing(rec.url)]})
        sleep = RecordingSleep()
        enricher, _ = run(session, [rec], sleep=sleep)

        task = enricher.tasks[0]
        assert rec.launch_date is None
        assert rec.error == MAX_RETRIES_ERROR
        assert task.state is RecordState.EXHAUSTED
        assert task.attempts == POLICY.max_attempts
        # no wait after the final attempt
        assert len(task.backoffs) == POLICY.max_attempts - 1
        assert len(session.calls) == POLICY.max_attempts

    def test_exhaustion_logs_last_reason(self, caplog):
        rec = record("throttled")
        session = FakeSession({rec.url: [missing(rec.url), rate_limited(rec.url)]})
        with caplog.at_level(logging.ERROR, logger="appharvest"):
            enricher, _ = run(session, [rec])

        task = enricher.tasks[0]
        assert task.last_reason == RateLimited.reason
        assert rec.error == MAX_RETRIES_ERROR
        assert "Failed after 3 attempts (last: RATE_LIMITED)" in caplog.text

    def test_transient_network_is_retried(self):
        rec = record("flaky")
        session = FakeSession({rec.url: [TransientNetwork("Navigation timeout"), ok(rec.url)]})
        enricher, _ = run(session, [rec])
        assert rec.launch_date == "March 3, 2025"
        assert enricher.tasks[0].retries == 1

    def test_unexpected_error_is_fatal(self):
        rec = record("boom")
        session = FakeSession({rec.url: [RuntimeError("browser crashed")]})
        enricher, _ = run(session, [rec])

        assert rec.launch_date is None
        assert rec.error == "browser crashed"
        assert enricher.tasks[0].state is RecordState.FATAL
        assert len(session.calls) == 1

    def test_custom_extractor(self):
        rec = record("foo")
        session = FakeSession({rec.url: [missing(rec.url)]})
        run(session, [rec], extractor=lambda html: "January 1, 2000")
        assert rec.launch_date == "January 1, 2000"

    def test_retry_clears_previous_error(self):
        rec = record("foo")
        rec.error = MAX_RETRIES_ERROR
        session = FakeSession({rec.url: [ok(rec.url)]})
        run(session, [rec])
        assert rec.error is None
        assert rec.is_terminal()


# ============================================================================
# Batching and resources
# ============================================================================
class TestEnrichBatches:
    def mixed_session(self, records):
        outcomes = [ok, not_found, missing, rate_limited, lambda url: RuntimeError("x")]
        return FakeSession({
            r.url: [outcomes[i % len(outcomes)](r.url)] for i, r in enumerate(records)
        })

    def test_every_record_reaches_exactly_one_terminal_state(self):
        records = [record(f"app-{i}") for i in range(7)]
        session = self.mixed_session(records)
        enricher, done = run(session, records)

        assert sorted(r.url for r in done) == sorted(r.url for r in records)
        assert all(task.state in TERMINAL_STATES for task in enricher.tasks)
        assert all(r.is_terminal() for r in records)

    def test_pages_closed_on_every_path(self):
        records = [record(f"app-{i}") for i in range(5)]
        session = self.mixed_session(records)
        run(session, records)
        assert session.opened == 5
        assert session.closed == 5
        assert all(session.blocked)

    def test_batch_callback_after_each_batch(self):
        records = [record(f"app-{i}") for i in range(5)]
        session = FakeSession({r.url: [ok(r.url)] for r in records})
        seen = []

        async def on_batch(index, batch):
            seen.append((index, [r.name for r in batch]))
            # every record of the batch is finished when the callback runs
            assert all(r.launch_date for r in batch)

        enricher = DetailEnricher(session, policy=POLICY, sleep=RecordingSleep())
        asyncio.run(enricher.enrich(records, on_batch_complete=on_batch))

        assert seen == [
            (1, ["app-0", "app-1"]),
            (2, ["app-2", "app-3"]),
            (3, ["app-4"]),
        ]

    def test_batch_concurrency_bound(self):
        in_flight = 0
        peak = 0

        class SlowFetcher:
            async def fetch(self, url, **kwargs):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0)
                in_flight -= 1
                return ok(url)

        class SlowSession(FakeSession):
            def open_page(self, block_resources=False):
                session = self

                class _Page:
                    async def __aenter__(self):
                        session.opened += 1
                        return SlowFetcher()

                    async def __aexit__(self, *exc):
                        session.closed += 1

                return _Page()

        records = [record(f"app-{i}") for i in range(6)]
        session = SlowSession()
        run(session, records)
        assert peak <= POLICY.concurrency
        assert peak == 2
        assert session.closed == 6

    def test_empty_input(self):
        session = FakeSession()
        _, done = run(session, [])
        assert done == []
        assert session.opened == 0


class TestBackoffMonotonic:
    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_waits_never_decrease(self, seed):
        policy = RetryPolicy(
            concurrency=1, max_attempts=5, pre_delay=(0.0, 0.0),
            backoff_unit=5.0, backoff_jitter=5.0,
        )
        rec = record("slow")
        session = FakeSession({rec.url: [rate_limited(rec.url)]})
        enricher = DetailEnricher(session, policy=policy, sleep=RecordingSleep(), rng=random.Random(seed))
        asyncio.run(enricher.enrich([rec]))

        waits = enricher.tasks[0].backoffs
        assert len(waits) == 4
        assert waits == sorted(waits)
        assert rec.error == MAX_RETRIES_ERROR
