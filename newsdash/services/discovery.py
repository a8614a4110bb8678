"""Feed link discovery from a site homepage."""

import logging
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .block_detector import is_blocked

logger = logging.getLogger(__name__)

FEED_LINK_SELECTOR = (
    'link[rel="alternate"][type*="rss"], '
    'link[type="application/rss+xml"], '
    'link[type="application/atom+xml"]'
)


def discover_feed_url(homepage_body: str, homepage_url: str) -> Optional[str]:
    """
    Return the feed advertised by ``<link rel="alternate">`` in a homepage.

    Relative hrefs are resolved against ``homepage_url``.  Block pages and
    pages without an advertisement yield ``None``.
    """
    if not homepage_body or is_blocked(homepage_body):
        return None

    soup = BeautifulSoup(homepage_body, "html.parser")
    for el in soup.select(FEED_LINK_SELECTOR):
        href = (el.get("href") or "").strip()
        if not href:
            continue
        if not href.lower().startswith(("http://", "https://")):
            href = urljoin(homepage_url, href)
        return href
    return None
