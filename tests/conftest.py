# tests/conftest.py

from datetime import datetime, timedelta, timezone

import pytest

from newsdash.models.articles import AggregateResult, Article, Category, ParsedVia, Source
from newsdash.services.errors import NetworkError

BLOCK_PAGE = (
    "<html><head><title>example.com</title></head><body>"
    "<p>Please enable JS and disable any ad blocker</p>"
    "<script src=\"https://ct.captcha-delivery.com/c.js\"></script>"
    "</body></html>"
)

BASE_TIME = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_rss(count: int, base: str = "https://news.example/story", title: str = "Story") -> str:
    items = "".join(
        f"<item><title>{title} {i}</title><link>{base}/{i}</link>"
        f"<pubDate>Wed, 01 Oct 2025 10:{i % 60:02d}:00 GMT</pubDate></item>"
        for i in range(count)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Example</title>'
        f"{items}</channel></rss>"
    )


def make_homepage(feed_href: str, feed_type: str = "application/rss+xml") -> str:
    return (
        "<!doctype html><html><head><title>Home</title>"
        f'<link rel="alternate" type="{feed_type}" title="Feed" href="{feed_href}">'
        "</head><body><h1>Latest</h1></body></html>"
    )


class FakeFetcher:
    """Serves canned bodies by URL; unknown URLs fail like a 404.

    A list value is served one element per call, repeating the last one.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False

    async def fetch(self, url, headers=None):
        self.calls.append(url)
        response = self.responses.get(url)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if response is None:
            raise NetworkError("HTTP 404", status=404)
        if isinstance(response, BaseException):
            raise response
        return response, 200

    async def close(self):
        self.closed = True


class StubAggregator:
    """Returns a fixed AggregateResult and counts cycles."""

    def __init__(self, articles=()):
        self.articles = tuple(articles)
        self.cycles = 0
        self.closed = False

    async def run_cycle(self, sources=None):
        self.cycles += 1
        return AggregateResult(
            articles=self.articles,
            source_counts={a.source: 1 for a in self.articles},
        )

    async def close(self):
        self.closed = True


def article(
    source: str,
    n: int,
    category: Category = Category.WORLD,
    link: str = None,
    minutes_ago: int = 0,
) -> Article:
    return Article(
        title=f"{source} headline {n}",
        link=link or f"https://{source.lower().replace(' ', '-')}.example/{n}",
        source=source,
        category=category,
        published_at=BASE_TIME - timedelta(minutes=minutes_ago),
        parsed_via=ParsedVia.STRUCTURED,
    )


@pytest.fixture
def source():
    return Source(name="Example Wire", category=Category.WORLD, candidates=("https://news.example/feed",))


@pytest.fixture
def fake_fetcher_cls():
    return FakeFetcher


@pytest.fixture
def stub_aggregator_cls():
    return StubAggregator


@pytest.fixture
def make_article():
    return article


@pytest.fixture
def rss():
    return make_rss


@pytest.fixture
def homepage():
    return make_homepage


@pytest.fixture
def block_page():
    return BLOCK_PAGE
