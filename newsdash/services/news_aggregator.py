import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..core.sources import SOURCES
from ..models.articles import AggregateResult, Article, Source
from .activity_log import ActivityLog, activity_log
from .fetcher import TimeBoundedFetcher
from .resolver import CandidateResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRACKING_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "mc_cid",
    "mc_eid",
})


def canonical_link(url: Optional[str]) -> str:
    """Dedupe key for an article link.

    Drops the fragment and the known tracking parameters and lower-cases
    scheme and host.  The remaining query parameters keep their order.
    Input that does not parse as a URL is returned as given.
    """
    if not url:
        return ""
    raw = url.strip()
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw
    if not parts.scheme or not parts.netloc:
        return raw
    kept = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ]
    return urlunsplit((
        parts.scheme.lower(),
        parts.netloc.lower(),
        parts.path or "/",
        urlencode(kept, doseq=True),
        "",
    ))


def dedupe_by(items: Iterable[T], key: Callable[[T], str]) -> List[T]:
    """Keep the first item for each key, preserving order."""
    seen = set()
    out: List[T] = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        out.append(item)
    return out


def dedupe_by_canonical_link(articles: Iterable[Article]) -> List[Article]:
    return dedupe_by(articles, lambda a: canonical_link(a.link))


def round_robin_by_source(articles: Sequence[Article], rng: Optional[random.Random] = None) -> List[Article]:
    """
    Interleave articles so that each pass takes one item per source.

    Each source's group is sorted newest first.  Group order is shuffled
    once, and every pass starts at a fresh random offset, so the phase
    differs between refreshes without favouring any source.
    """
    rng = rng or random.Random()
    by_source: Dict[str, List[Article]] = {}
    for article in articles:
        by_source.setdefault(article.source or "Unknown", []).append(article)

    names = list(by_source)
    rng.shuffle(names)
    queues = [sorted(by_source[n], key=lambda a: a.published_at, reverse=True) for n in names]

    result: List[Article] = []
    remaining = len(articles)
    while remaining > 0:
        start = rng.randrange(len(queues))
        for step in range(len(queues)):
            queue = queues[(start + step) % len(queues)]
            if queue:
                result.append(queue.pop(0))
                remaining -= 1
                if remaining == 0:
                    break
    return result


def fair_interleave(articles: Sequence[Article], rng: Optional[random.Random] = None) -> List[Article]:
    """Round-robin by source, then one final shuffle of the output."""
    if len(articles) <= 2:
        return list(articles)
    rng = rng or random.Random()
    mixed = round_robin_by_source(articles, rng)
    rng.shuffle(mixed)
    return mixed


class NewsAggregator:
    """
    Runs one refresh cycle across every configured source.

    Each source is resolved in its own task.  A source that raises or comes
    back empty only loses its own articles for the cycle; the gather barrier
    always settles and a new ``AggregateResult`` is always produced.
    """

    def __init__(
        self,
        fetcher: Optional[TimeBoundedFetcher] = None,
        resolver: Optional[CandidateResolver] = None,
        log: Optional[ActivityLog] = None,
    ):
        self.log = log or activity_log
        self.fetcher = fetcher or TimeBoundedFetcher()
        self.resolver = resolver or CandidateResolver(self.fetcher, log=self.log)

    async def close(self):
        close = getattr(self.fetcher, "close", None)
        if close is not None:
            await close()

    async def run_cycle(self, sources: Optional[Sequence[Source]] = None) -> AggregateResult:
        sources = list(SOURCES if sources is None else sources)
        started = datetime.now(timezone.utc)

        batches = await asyncio.gather(
            *(self.resolver.resolve(source) for source in sources),
            return_exceptions=True,
        )

        collected: List[Article] = []
        source_counts: Dict[str, int] = {}
        for source, batch in zip(sources, batches):
            if isinstance(batch, BaseException):
                logger.error(f"Source task for {source.name} failed: {batch!r}")
                self.log.write(f"Error {source.name}: {batch}")
                source_counts[source.name] = 0
                continue
            source_counts[source.name] = len(batch)
            collected.extend(batch)

        unique = dedupe_by_canonical_link(collected)
        elapsed = (datetime.now(timezone.utc) - started).total_seconds()
        logger.info(
            f"Cycle finished: {len(unique)} unique of {len(collected)} articles "
            f"from {sum(1 for n in source_counts.values() if n)}/{len(sources)} sources in {elapsed:.1f}s"
        )
        return AggregateResult(
            articles=tuple(unique),
            generated_at=datetime.now(timezone.utc),
            source_counts=source_counts,
        )


# Global aggregator instance
news_aggregator = NewsAggregator()
