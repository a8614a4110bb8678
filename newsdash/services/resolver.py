"""
Per-source candidate resolution.

For one ``Source`` the resolver walks its candidate URLs in order and stops
at the first one that yields articles.  Along the way it recovers from the
usual failure modes:

* a challenge page on a section URL is retried against a known direct feed
  mirror (``core.sources.SECTION_MIRRORS``);
* a page with no items on a non-feed URL is searched for an advertised feed
  link, which is tried next;
* a network failure simply moves on to the next candidate.

The walk is a bounded worklist with a visited set: every URL is tried at
most once per cycle, and URLs reached through a mirror or discovery never
spawn further mirrors or discoveries.  When nothing worked and the source
has a single bare homepage that was never searched for a feed link, the
homepage is read once more for discovery only.  ``resolve`` never raises.
"""

import asyncio
import logging
import re
from collections import deque
from typing import Deque, Dict, List, Optional, Protocol, Set, Tuple

from ..core.config import settings
from ..core.sources import mirror_for
from ..models.articles import Article, FetchOutcome, OutcomeKind, Source
from .activity_log import ActivityLog, activity_log
from .block_detector import is_blocked
from .discovery import discover_feed_url
from .errors import NetworkError
from .feed_parser import parse_feed

logger = logging.getLogger(__name__)

FEED_PATH_RE = re.compile(r"/(rss|feed)", re.I)

# How a URL got onto the worklist.
ORIGIN_CANDIDATE = "candidate"
ORIGIN_MIRROR = "mirror"
ORIGIN_DISCOVERED = "discovered"


class Fetcher(Protocol):
    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> Tuple[str, int]:
        ...


def looks_like_feed_url(url: str) -> bool:
    return bool(FEED_PATH_RE.search(url or ""))


class CandidateResolver:
    def __init__(
        self,
        fetcher: Fetcher,
        log: Optional[ActivityLog] = None,
        item_limit: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.fetcher = fetcher
        self.log = log or activity_log
        self.item_limit = item_limit if item_limit is not None else settings.FEED_ITEM_LIMIT
        self.retry_delay = retry_delay if retry_delay is not None else settings.CANDIDATE_RETRY_DELAY_SECONDS

    async def try_candidate(self, source: Source, url: str) -> FetchOutcome:
        """Fetch one URL and classify the response."""
        try:
            body, _status = await self.fetcher.fetch(url)
        except NetworkError as e:
            return FetchOutcome(OutcomeKind.NETWORK_ERROR, url, reason=e.reason)

        if is_blocked(body):
            return FetchOutcome(OutcomeKind.BLOCKED, url, body=body)

        items = parse_feed(body, source, url, limit=self.item_limit)
        if items:
            return FetchOutcome(OutcomeKind.ITEMS, url, items=tuple(items), body=body)
        return FetchOutcome(OutcomeKind.EMPTY, url, body=body)

    async def resolve(self, source: Source) -> List[Article]:
        try:
            return await self._resolve(source)
        except Exception as e:
            logger.exception(f"Unexpected failure resolving {source.name}")
            self.log.write(f"Error {source.name}: {e}")
            return []

    async def _resolve(self, source: Source) -> List[Article]:
        candidates = list(source.candidates)
        homepages = [u for u in candidates if not looks_like_feed_url(u)]

        worklist: Deque[Tuple[str, str]] = deque((u, ORIGIN_CANDIDATE) for u in candidates)
        visited: Set[str] = set()
        discovery_ran: Set[str] = set()
        attempts = 0

        while worklist:
            url, origin = worklist.popleft()
            if not url or url in visited:
                continue
            visited.add(url)

            if attempts and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)
            attempts += 1

            outcome = await self.try_candidate(source, url)
            expandable = origin == ORIGIN_CANDIDATE and not looks_like_feed_url(url)

            if outcome.kind is OutcomeKind.ITEMS:
                suffix = " [regex]" if outcome.parsed_via_fallback else ""
                self.log.write(f"Fetched {len(outcome.items)} from {source.name} ({url}){suffix}")
                return list(outcome.items)

            if outcome.kind is OutcomeKind.NETWORK_ERROR:
                self.log.write(f"Error {source.name}: {outcome.reason} ({url})")
                continue

            if outcome.kind is OutcomeKind.BLOCKED:
                mirror = mirror_for(url) if expandable else None
                if mirror and mirror not in visited:
                    worklist.appendleft((mirror, ORIGIN_MIRROR))
                    continue
                self.log.write(f"Blocked/JS page for {source.name} @ {url}")
                continue

            # EMPTY
            if expandable:
                discovery_ran.add(url)
                discovered = discover_feed_url(outcome.body, url)
                if discovered and discovered not in visited:
                    self.log.write(f"Discovered RSS for {source.name}: {discovered}")
                    worklist.appendleft((discovered, ORIGIN_DISCOVERED))
                    continue
            self.log.write(f"No items from {source.name} ({url})")

        # Last resort: a single bare homepage that was never searched for a
        # feed link (it was blocked or unreachable) gets one fresh look.
        if len(homepages) == 1 and homepages[0] not in discovery_ran:
            items = await self._final_discovery(source, homepages[0], visited)
            if items:
                return items

        self.log.write(f"No working candidate for {source.name}; 0 articles this cycle")
        return []

    async def _final_discovery(self, source: Source, homepage: str, visited: Set[str]) -> List[Article]:
        """Re-read ``homepage`` for an advertised feed and try that feed once.

        This is a discovery read of the page, not a second candidate attempt:
        the page itself is never parsed for items again.
        """
        if self.retry_delay > 0:
            await asyncio.sleep(self.retry_delay)
        try:
            body, _status = await self.fetcher.fetch(homepage)
        except NetworkError as e:
            self.log.write(f"Error {source.name}: {e.reason} ({homepage})")
            return []

        discovered = discover_feed_url(body, homepage)
        if not discovered or discovered in visited:
            return []
        visited.add(discovered)
        self.log.write(f"Discovered RSS for {source.name}: {discovered}")

        outcome = await self.try_candidate(source, discovered)
        if outcome.kind is OutcomeKind.ITEMS:
            suffix = " [regex]" if outcome.parsed_via_fallback else ""
            self.log.write(f"Fetched {len(outcome.items)} from {source.name} ({discovered}){suffix}")
            return list(outcome.items)
        return []
