"""
Failure taxonomy for the harvesting pipeline.

Record-level errors are caught by the enricher and written into the record's
``error`` field; only snapshot setup errors are allowed to stop a run.
"""

from __future__ import annotations

NOT_FOUND_ERROR = "404"
MAX_RETRIES_ERROR = "Max Retries Exceeded"


class HarvestError(Exception):
    """Base exception for crawl and enrichment failures."""

    reason = "ERROR"
    retriable = False


class RetriableError(HarvestError):
    """Raised for outcomes worth another attempt after a backoff."""

    retriable = True


class RateLimited(RetriableError):
    """Raised when the host answers with a throttling status or page."""

    reason = "RATE_LIMITED"


class TransientNetwork(RetriableError):
    """Raised on navigation timeouts and recoverable network faults."""

    reason = "TRANSIENT_NETWORK"


class ExtractionMiss(RetriableError):
    """Raised when a detail page loaded but carried no launch date."""

    reason = "DATE_NOT_FOUND"


class ResourceNotFound(HarvestError):
    """Raised when the listing no longer exists."""

    reason = NOT_FOUND_ERROR


class RetryBudgetExhausted(HarvestError):
    """Raised once a record used up its attempt budget."""

    reason = MAX_RETRIES_ERROR


class ContentMissing(HarvestError):
    """Raised when the expected page structure never appeared."""

    reason = "CONTENT_MISSING"


class SnapshotError(HarvestError):
    """Base exception for snapshot persistence failures."""


class SnapshotMissingError(SnapshotError, FileNotFoundError):
    """Raised when a snapshot required as input does not exist."""


class SnapshotFormatError(SnapshotError, ValueError):
    """Raised when a snapshot file is not a JSON array of records."""
