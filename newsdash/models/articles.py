"""Core records shared by the fetch, parse and aggregation layers."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Category(str, Enum):
    WORLD = "world"
    US = "us"
    CYBER = "cyber"


class ParsedVia(str, Enum):
    STRUCTURED = "structured"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Source:
    """One configured headline provider.

    ``candidates`` is ordered: mirrors most likely to work come first.
    """

    name: str
    category: Category
    candidates: Tuple[str, ...]


@dataclass(frozen=True)
class Article:
    title: str
    link: str
    source: str
    category: Category
    published_at: datetime
    parsed_via: ParsedVia = ParsedVia.STRUCTURED


class OutcomeKind(str, Enum):
    ITEMS = "items"
    BLOCKED = "blocked"
    EMPTY = "empty"
    NETWORK_ERROR = "network_error"


@dataclass(frozen=True)
class FetchOutcome:
    """Result of trying a single candidate URL."""

    kind: OutcomeKind
    url: str
    items: Tuple[Article, ...] = ()
    body: str = ""
    reason: Optional[str] = None

    @property
    def parsed_via_fallback(self) -> bool:
        return any(a.parsed_via is ParsedVia.FALLBACK for a in self.items)


@dataclass(frozen=True)
class AggregateResult:
    """Deduplicated union of every source's articles for one refresh cycle.

    Instances are never patched: each cycle builds a new one and the
    ``HeadlineStore`` swaps its reference once the new value is complete.
    """

    articles: Tuple[Article, ...] = ()
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_counts: Dict[str, int] = field(default_factory=dict)

    def for_category(
        self,
        category: Category,
        rng: Optional[random.Random] = None,
        limit: Optional[int] = None,
    ) -> List[Article]:
        """Return the fairly interleaved articles of one category."""
        # Imported here to keep the model module free of service imports.
        from ..services.news_aggregator import dedupe_by_canonical_link, fair_interleave

        subset = [a for a in self.articles if a.category == category]
        mixed = fair_interleave(dedupe_by_canonical_link(subset), rng=rng)
        if limit is not None:
            mixed = mixed[: max(0, limit)]
        return mixed

    def __len__(self) -> int:
        return len(self.articles)
