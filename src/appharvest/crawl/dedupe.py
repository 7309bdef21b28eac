from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Set

from ..config.settings import POPULARITY_THRESHOLD
from ..models import ListingRecord
from .canonical import canonicalize_url


class SeenListings:
    """Canonical listing URLs already collected during a crawl."""

    def __init__(self) -> None:
        self._seen: Set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, url: object) -> bool:
        return canonicalize_url(url) in self._seen

    def admit(self, url: str) -> bool:
        """Record ``url``; True only the first time its canonical form shows up."""
        key = canonicalize_url(url)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def filter_new(self, records: Iterable[ListingRecord], category: str) -> List[ListingRecord]:
        fresh: List[ListingRecord] = []
        for record in records:
            url = canonicalize_url(record.url)
            if not self.admit(url):
                continue
            fresh.append(replace(record, url=url, category=category))
        return fresh


def filter_popular(
    records: Iterable[ListingRecord],
    threshold: int = POPULARITY_THRESHOLD,
) -> List[ListingRecord]:
    """Listings with strictly more than ``threshold`` reviews."""
    return [r for r in records if r.reviews > threshold]
