"""Shared fixtures for the appharvest test suite."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

# Ensure src/ is on the path so "import appharvest" works when running from repo root.
repo_root = Path(__file__).resolve().parents[1]
src_path = repo_root / "src"
p_str = str(src_path)
if p_str not in sys.path:
    sys.path.insert(0, p_str)

from appharvest.browser.session import PageSnapshot  # noqa: E402


# ---------------------------------------------------------------------------
# HTML builders
# ---------------------------------------------------------------------------

def grid_page(apps, next_page=None):
    """Category page in the card-grid layout.

    ``apps`` is a list of (href, name, rating, reviews) tuples.
    """
    cards = "".join(
        f'<div><a href="{href}">{name}</a><span>{rating} ★</span><span>{reviews}</span></div>'
        for href, name, rating, reviews in apps
    )
    nav = f'<a href="?page={next_page}">Next</a>' if next_page else ""
    return f'<html><body><div class="grid">{cards}</div>{nav}</body></html>'


def table_page(apps, next_page=None):
    rows = "".join(
        f'<tr><td><a href="{href}">{name}</a></td><td>{rating}</td><td>{reviews} reviews</td></tr>'
        for href, name, rating, reviews in apps
    )
    nav = f'<a href="?page={next_page}">Next</a>' if next_page else ""
    return f"<html><body><table><tbody>{rows}</tbody></table>{nav}</body></html>"


def detail_page(launched="March 3, 2025", title="App"):
    if launched is None:
        body = "<div><h1>Some app</h1><p>No dates here</p></div>"
    else:
        body = f"<div><h1>Some app</h1><div><span>Launched</span><span>{launched}</span></div></div>"
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


def snap(url, html, status=200, title=""):
    return PageSnapshot(url=url, status=status, html=html, title=title)


# ---------------------------------------------------------------------------
# Browser fakes
# ---------------------------------------------------------------------------

class FakeFetcher:
    """Serves scripted outcomes per URL.

    Each URL maps to a list of outcomes (PageSnapshot or exception instance),
    consumed one per fetch; the last outcome repeats once the list runs out.
    """

    def __init__(self, script, calls):
        self.script = script
        self.calls = calls

    async def fetch(self, url, **kwargs):
        self.calls.append((url, kwargs))
        outcomes = self.script.get(url)
        if not outcomes:
            raise AssertionError(f"unscripted fetch: {url}")
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeSession:
    def __init__(self, script=None):
        self.script = script if script is not None else {}
        self.calls = []
        self.opened = 0
        self.closed = 0
        self.blocked = []
        self.entered = 0
        self.exited = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited += 1

    @asynccontextmanager
    async def open_page(self, block_resources=False):
        self.opened += 1
        self.blocked.append(block_resources)
        try:
            yield FakeFetcher(self.script, self.calls)
        finally:
            self.closed += 1

    def urls(self):
        return [url for url, _ in self.calls]

    def factory(self, **kwargs):
        self.factory_kwargs = kwargs
        return self


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
