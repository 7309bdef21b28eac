from __future__ import annotations

from typing import List

from ..config.settings import INDEX_URL, INDEX_WAIT_MS
from ..models import Category
from ..parsing.listing import parse_categories, sample_links
from ..utils.logging import get_logger

logger = get_logger(__name__)


async def discover_categories(
    fetcher,
    index_url: str = INDEX_URL,
    wait_ms: int = INDEX_WAIT_MS,
) -> List[Category]:
    """Load the category index and return its unique ``/category/`` links."""
    logger.info("Navigating to categories page %s", index_url)
    snapshot = await fetcher.fetch(
        index_url,
        wait_until="networkidle",
        wait_for="a",
        wait_timeout_ms=wait_ms,
        wait_required=False,
    )

    categories = parse_categories(snapshot.html, snapshot.url or index_url)
    logger.info("Found %d categories.", len(categories))
    if not categories:
        logger.warning(
            "No category links found; first links on page: %s",
            sample_links(snapshot.html, snapshot.url or index_url),
        )
    return categories
