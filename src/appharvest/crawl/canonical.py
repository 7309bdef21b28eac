from __future__ import annotations

from typing import Any
from urllib.parse import urlparse, urlunparse


def canonicalize_url(url: Any) -> Any:
    """Drop the query string (tracking/pagination params) from a listing URL.

    Never raises: anything that is not a string, has no query, or cannot be
    parsed comes back unchanged.
    """
    if not isinstance(url, str) or "?" not in url:
        return url
    try:
        p = urlparse(url)
    except ValueError:
        return url
    return urlunparse((p.scheme, p.netloc, p.path, p.params, "", ""))


def page_url(base: str, page: int) -> str:
    """Address of page ``page`` of a category listing."""
    if page <= 1:
        return base
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}page={page}"
