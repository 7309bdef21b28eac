from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..errors import (
    ExtractionMiss,
    RateLimited,
    ResourceNotFound,
    RetryBudgetExhausted,
    TransientNetwork,
)
from ..models import EnrichedRecord


class RecordState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    RATE_LIMITED = "rate_limited"
    DATE_NOT_FOUND = "date_not_found"
    TRANSIENT_ERROR = "transient_error"
    EXTRACTED = "extracted"
    NOT_FOUND = "not_found"
    EXHAUSTED = "exhausted"
    FATAL = "fatal"


RETRIABLE_STATES = frozenset({
    RecordState.RATE_LIMITED,
    RecordState.DATE_NOT_FOUND,
    RecordState.TRANSIENT_ERROR,
})

TERMINAL_STATES = frozenset({
    RecordState.EXTRACTED,
    RecordState.NOT_FOUND,
    RecordState.EXHAUSTED,
    RecordState.FATAL,
})


def state_for(exc: BaseException) -> RecordState:
    """Map a failed attempt onto the state it leaves the record in."""
    if isinstance(exc, RateLimited):
        return RecordState.RATE_LIMITED
    if isinstance(exc, ExtractionMiss):
        return RecordState.DATE_NOT_FOUND
    if isinstance(exc, TransientNetwork):
        return RecordState.TRANSIENT_ERROR
    if isinstance(exc, ResourceNotFound):
        return RecordState.NOT_FOUND
    if isinstance(exc, RetryBudgetExhausted):
        return RecordState.EXHAUSTED
    return RecordState.FATAL


@dataclass
class EnrichmentTask:
    """Progress of one record through the retry state machine."""

    record: EnrichedRecord
    state: RecordState = RecordState.PENDING
    attempts: int = 0
    backoffs: List[float] = field(default_factory=list)
    last_reason: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def retries(self) -> int:
        return len(self.backoffs)
