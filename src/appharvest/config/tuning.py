"""
Retry/backoff tunables for the detail enrichment passes.

The initial pass runs wider and gives up sooner; the recovery pass targets
listings that already failed once, so it runs narrower and tries longer.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .settings import NAVIGATION_TIMEOUT_MS


@dataclass(frozen=True)
class RetryPolicy:
    concurrency: int
    max_attempts: int
    pre_delay: Tuple[float, float]  # seconds, uniform jitter before each load
    backoff_unit: float             # seconds per failed attempt
    backoff_jitter: float           # extra uniform seconds on top
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        low, high = self.pre_delay
        if low < 0 or high < low:
            raise ValueError(f"invalid pre_delay range: {self.pre_delay!r}")
        if self.backoff_unit < 0 or self.backoff_jitter < 0:
            raise ValueError("backoff values must be non-negative")
        # Keeps base*k + U(0, j) non-decreasing in k.
        if self.backoff_jitter > self.backoff_unit:
            raise ValueError("backoff_jitter must not exceed backoff_unit")

    def pre_request_delay(self, rng: Optional[random.Random] = None) -> float:
        rng = rng or random
        low, high = self.pre_delay
        return rng.uniform(low, high)

    def backoff_for(self, attempts: int, rng: Optional[random.Random] = None) -> float:
        """Wait before the next attempt after ``attempts`` failures."""
        rng = rng or random
        return self.backoff_unit * attempts + rng.uniform(0.0, self.backoff_jitter)

    def with_overrides(
        self,
        concurrency: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> "RetryPolicy":
        changes = {}
        if concurrency is not None:
            changes["concurrency"] = concurrency
        if max_attempts is not None:
            changes["max_attempts"] = max_attempts
        return replace(self, **changes) if changes else self


# ── First enrichment pass ────────────────────────────────────────────
ENRICH_POLICY = RetryPolicy(
    concurrency=5,
    max_attempts=3,
    pre_delay=(0.0, 3.0),
    backoff_unit=10.0,     # 10s, 20s, ...
    backoff_jitter=5.0,
)

# ── Recovery pass (persistent rate limiting) ─────────────────────────
RECOVERY_POLICY = RetryPolicy(
    concurrency=2,
    max_attempts=5,
    pre_delay=(2.0, 7.0),
    backoff_unit=5.0,
    backoff_jitter=2.5,
)
