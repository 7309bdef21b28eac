"""Sequential, bounded walk over the pages of each category."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..config.settings import (
    LISTING_CONTAINER_SELECTOR,
    LISTING_WAIT_MS,
    MAX_PAGES_PER_CATEGORY,
)
from ..errors import ContentMissing
from ..models import Category, ListingRecord
from ..parsing.listing import has_next_page, parse_listing_rows
from ..utils.logging import get_logger
from .canonical import page_url
from .dedupe import SeenListings

logger = get_logger(__name__)

STOP_PAGE_ABSENT = "page_absent"
STOP_EMPTY = "empty_page"
STOP_NO_NEXT = "no_next_page"
STOP_PAGE_LIMIT = "page_limit"
STOP_ERROR = "error"


@dataclass
class CategoryResult:
    category: Category
    records: List[ListingRecord] = field(default_factory=list)
    pages_loaded: int = 0
    stop_reason: Optional[str] = None


class CategoryCrawler:
    def __init__(
        self,
        fetcher,
        max_pages: int = MAX_PAGES_PER_CATEGORY,
        wait_selector: str = LISTING_CONTAINER_SELECTOR,
        wait_ms: int = LISTING_WAIT_MS,
        seen: Optional[SeenListings] = None,
    ) -> None:
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        self.fetcher = fetcher
        self.max_pages = max_pages
        self.wait_selector = wait_selector
        self.wait_ms = wait_ms
        self.seen = seen if seen is not None else SeenListings()
        self.results: List[CategoryResult] = []

    async def crawl_category(self, category: Category) -> CategoryResult:
        result = CategoryResult(category=category)

        for current_page in range(1, self.max_pages + 1):
            url = page_url(category.url, current_page)
            logger.info("  - Scraping page %d...", current_page)
            try:
                snapshot = await self.fetcher.fetch(
                    url,
                    wait_for=self.wait_selector,
                    wait_timeout_ms=self.wait_ms,
                )
                result.pages_loaded += 1

                found = parse_listing_rows(snapshot.html, snapshot.url or url)
                if not found:
                    logger.info("    No apps found on this page. Stopping category.")
                    result.stop_reason = STOP_EMPTY
                    break

                fresh = self.seen.filter_new(found, category.name)
                result.records.extend(fresh)
                logger.info("    Found %d apps (%d new).", len(found), len(fresh))

                if not has_next_page(snapshot.html, current_page):
                    logger.info("    No next page link found.")
                    result.stop_reason = STOP_NO_NEXT
                    break
            except ContentMissing:
                logger.info("    No content found or timeout. Ending category.")
                result.stop_reason = STOP_PAGE_ABSENT
                break
            except Exception as exc:
                logger.error("    Error scraping page %d: %s", current_page, exc)
                result.stop_reason = STOP_ERROR
                break
        else:
            logger.info("Reached page limit (%d). Moving to next category.", self.max_pages)
            result.stop_reason = STOP_PAGE_LIMIT

        return result

    async def crawl(self, categories: Iterable[Category]) -> List[ListingRecord]:
        """Crawl every category in order; returns all unique listings."""
        listings: List[ListingRecord] = []
        for category in categories:
            logger.info("Processing category: %s (%s)", category.name, category.url)
            result = await self.crawl_category(category)
            self.results.append(result)
            listings.extend(result.records)
        logger.info("Total unique apps found: %d", len(listings))
        return listings
