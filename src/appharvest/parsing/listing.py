"""Category index and category listing page parsers.

Everything here works on HTML strings so it can be exercised without a
browser; the crawler hands over ``page.content()`` after each load.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..config.settings import CATEGORY_LINK_MARKER, LISTING_LINK_MARKER
from ..crawl.canonical import canonicalize_url
from ..models import Category, ListingRecord

UNKNOWN_NAME = "Unknown App"

STAR_RATING_RE = re.compile(r"(\d(?:\.\d)?)\s*★|★\s*(\d(?:\.\d)?)")
INT_RE = re.compile(r"\d+")
LEADING_INT_RE = re.compile(r"^\s*(\d+)")
LEADING_FLOAT_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)")
PAGE_PARAM_RE = re.compile(r"[?&]page=(\d+)(?!\d)")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def _clean(text: str) -> str:
    return " ".join((text or "").split())


def leading_int(text: str) -> int:
    """'1,234 reviews' -> 1234, anything unparseable -> 0."""
    m = LEADING_INT_RE.match((text or "").replace(",", ""))
    return int(m.group(1)) if m else 0


def leading_float(text: str) -> float:
    m = LEADING_FLOAT_RE.match(text or "")
    return float(m.group(1)) if m else 0.0


# =========================
# Category index
# =========================

def parse_categories(html: str, base_url: str) -> List[Category]:
    soup = _soup(html)
    seen = set()
    out: List[Category] = []
    for a in soup.select("a[href]"):
        url = urljoin(base_url, a.get("href", "").strip())
        if CATEGORY_LINK_MARKER not in url:
            continue
        name = _clean(a.get_text(" ", strip=True))
        if not name or not url or url in seen:
            continue
        seen.add(url)
        out.append(Category(name=name, url=url))
    return out


def sample_links(html: str, base_url: str, limit: int = 5) -> List[str]:
    soup = _soup(html)
    return [urljoin(base_url, a.get("href", "")) for a in soup.select("a[href]")[:limit]]


# =========================
# Listing rows
# =========================

def _grid_cell(link: Tag) -> Optional[Tag]:
    for parent in link.parents:
        if not isinstance(parent, Tag) or parent.name != "div":
            continue
        grand = parent.parent
        if isinstance(grand, Tag) and "grid" in (grand.get("class") or []):
            return parent
    return None


def _row_container(link: Tag) -> Optional[Tag]:
    row = _grid_cell(link)
    if row is not None:
        return row
    parent = link.parent
    return parent.parent if parent is not None else None


def _scores_from_table(row: Tag):
    cells = row.find_all("td")
    if len(cells) < 3:
        return 0.0, 0
    reviews = leading_int(cells[-1].get_text(" ", strip=True))
    rating = leading_float(cells[-2].get_text(" ", strip=True))
    return rating, reviews


def _scores_from_text(text: str):
    rating = 0.0
    m = STAR_RATING_RE.search(text)
    if m:
        rating = float(m.group(1) or m.group(2))
    numbers = INT_RE.findall(text.replace(",", ""))
    reviews = int(numbers[-1]) if numbers else 0
    return rating, reviews


def parse_listing_rows(html: str, page_url: str) -> List[ListingRecord]:
    """Listings on one category page, in page order.

    Rows inside a table read rating/reviews from the last two cells; any
    other layout falls back to scanning the row text. Several anchors to the
    same listing collapse into one record.
    """
    soup = _soup(html)
    by_url: Dict[str, ListingRecord] = {}

    for link in soup.select(f'a[href*="{LISTING_LINK_MARKER}"]'):
        url = urljoin(page_url, link.get("href", "").strip())
        name = _clean(link.get_text(" ", strip=True)) or UNKNOWN_NAME

        table_row = link.find_parent("tr")
        if table_row is not None:
            rating, reviews = _scores_from_table(table_row)
        else:
            row = _row_container(link)
            text = _clean(row.get_text(" ", strip=True)) if row is not None else ""
            rating, reviews = _scores_from_text(text)

        key = canonicalize_url(url)
        existing = by_url.get(key)
        if existing is None:
            by_url[key] = ListingRecord(name=name, url=url, rating=rating, reviews=reviews)
        elif existing.name == UNKNOWN_NAME and name != UNKNOWN_NAME:
            existing.name = name

    return list(by_url.values())


def has_next_page(html: str, current_page: int) -> bool:
    """True when some link on the page points at ``page=current_page + 1``."""
    wanted = current_page + 1
    soup = _soup(html)
    for a in soup.select('a[href*="page="]'):
        for m in PAGE_PARAM_RE.finditer(a.get("href", "")):
            if int(m.group(1)) == wanted:
                return True
    return False
