from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


def _coerce_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _coerce_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class Category:
    name: str
    url: str


@dataclass
class ListingRecord:
    name: str
    url: str
    rating: float = 0.0
    reviews: int = 0
    category: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "rating": self.rating,
            "reviews": self.reviews,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ListingRecord":
        return cls(
            name=str(data.get("name") or ""),
            url=str(data.get("url") or ""),
            rating=_coerce_float(data.get("rating")),
            reviews=_coerce_int(data.get("reviews")),
            category=str(data.get("category") or ""),
        )


@dataclass
class EnrichedRecord(ListingRecord):
    launch_date: Optional[str] = None
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_listing(cls, listing: ListingRecord) -> "EnrichedRecord":
        return cls(
            name=listing.name,
            url=listing.url,
            rating=listing.rating,
            reviews=listing.reviews,
            category=listing.category,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EnrichedRecord":
        base = ListingRecord.from_dict(data)
        known = {"name", "url", "rating", "reviews", "category", "launchDate", "error"}
        return cls(
            name=base.name,
            url=base.url,
            rating=base.rating,
            reviews=base.reviews,
            category=base.category,
            launch_date=data.get("launchDate") or None,
            error=data.get("error") or None,
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["launchDate"] = self.launch_date
        out["error"] = self.error
        # Fields written by other tools ride along untouched.
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out

    def mark_extracted(self, launch_date: str) -> None:
        self.launch_date = launch_date
        self.error = None

    def mark_failed(self, error: str) -> None:
        self.launch_date = None
        self.error = error or "unknown error"

    @property
    def needs_enrichment(self) -> bool:
        return self.launch_date is None

    def is_terminal(self) -> bool:
        if self.launch_date is not None:
            return self.error is None
        return self.error is not None
