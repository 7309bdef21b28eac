"""Launch date extraction and page classification for listing detail pages.

``extract_launch_date`` is the default :data:`LaunchDateExtractor`; the
enricher accepts any callable with the same shape, so the heuristics can be
replaced without touching navigation or retry code.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from bs4 import BeautifulSoup, Tag

LaunchDateExtractor = Callable[[str], Optional[str]]

LAUNCH_LABEL = "Launched"
DATE_PATTERN = r"[A-Z][a-z]+ \d{1,2}, \d{4}"
DATE_RE = re.compile(DATE_PATTERN)
STRICT_DATE_RE = re.compile(rf"^{DATE_PATTERN}$")
RELAXED_RE = re.compile(rf"{LAUNCH_LABEL}\s*\n?\s*({DATE_PATTERN})")

RATE_LIMIT_STATUS = 429
RATE_LIMIT_BODY = "Too many requests"
RATE_LIMIT_TITLE = "429"
NOT_FOUND_STATUS = 404
NOT_FOUND_TITLES = ("404", "Not Found")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def _find_label(root: Tag) -> Optional[Tag]:
    for el in root.find_all(True):
        if len(el.contents) == 1 and el.get_text().strip() == LAUNCH_LABEL:
            return el
    return None


def _from_label(label: Tag) -> Optional[str]:
    sibling = label.find_next_sibling()
    if sibling is not None:
        m = DATE_RE.search(sibling.get_text())
        if m:
            return m.group(0)

    # Grid layouts: label and value are cells of the same parent.
    for cell in label.find_next_siblings():
        text = cell.get_text().strip()
        if STRICT_DATE_RE.match(text):
            return text
    return None


def page_text(html: str) -> str:
    soup = _soup(html)
    root = soup.body or soup
    return root.get_text("\n", strip=True)


def extract_launch_date(html: str) -> Optional[str]:
    """Return the 'Launched' date of a detail page, e.g. ``"March 3, 2025"``."""
    soup = _soup(html)
    root = soup.body or soup

    label = _find_label(root)
    if label is not None:
        found = _from_label(label)
        if found:
            return found

    for sep in ("\n", " "):
        m = RELAXED_RE.search(root.get_text(sep, strip=True))
        if m:
            return m.group(1)
    return None


def page_title(html: str) -> str:
    soup = _soup(html)
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return ""


def looks_rate_limited(status: Optional[int], title: str, html: str) -> bool:
    if status == RATE_LIMIT_STATUS:
        return True
    if RATE_LIMIT_TITLE in (title or ""):
        return True
    return RATE_LIMIT_BODY in page_text(html)


def looks_not_found(status: Optional[int], title: str) -> bool:
    if status == NOT_FOUND_STATUS:
        return True
    return any(marker in (title or "") for marker in NOT_FOUND_TITLES)
