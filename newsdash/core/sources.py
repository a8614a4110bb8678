"""
Static source catalog.

Each source lists its candidate endpoints in the order they should be
tried.  Some outlets keep several mirrors alive (or half alive), so the
one that currently works is placed first.  The catalog is loaded once at
import time and is never modified while the process runs.
"""

import re
from typing import Optional, Pattern, Tuple

from ..models.articles import Category, Source


def _source(name: str, category: Category, *urls: str) -> Source:
    return Source(name=name, category=category, candidates=tuple(urls))


SOURCES: Tuple[Source, ...] = (
    # US
    _source("BBC (US & Canada)", Category.US, "http://feeds.bbci.co.uk/news/world/us_and_canada/rss.xml"),
    _source("The Guardian (US)", Category.US, "https://www.theguardian.com/us-news/rss"),
    _source("The Independent (US)", Category.US, "https://www.independent.co.uk/topic/us/rss"),
    _source(
        "POLITICO (Politics)",
        Category.US,
        # rss.politico.com is the mirror that currently answers
        "https://rss.politico.com/politics-news.xml",
        "https://www.politico.com/rss/politics-news.xml",
        "https://www.politico.com/rss/politics08.xml",
    ),
    _source("Racket News", Category.US, "https://www.racket.news/feed"),
    _source("FfF Online (Reports)", Category.US, "https://foundationforfreedomonline.com/category/reports/feed/"),
    _source(
        "Reuters (US)",
        Category.US,
        "https://feeds.reuters.com/reuters/USNews",
        "https://feeds.reuters.com/Reuters/USNews",
    ),

    # World
    _source("BBC (World)", Category.WORLD, "http://feeds.bbci.co.uk/news/world/rss.xml"),
    _source("The Guardian (World)", Category.WORLD, "https://www.theguardian.com/world/rss"),
    _source("The Independent (World)", Category.WORLD, "https://www.independent.co.uk/news/world/rss"),
    _source("Popular Resistance", Category.WORLD, "https://popularresistance.org/feed/"),
    _source("Bellingcat", Category.WORLD, "https://www.bellingcat.com/feed/"),
    _source(
        "The Grayzone",
        Category.WORLD,
        "https://thegrayzone.com/feed/",
        "https://thegrayzone.com/category/news/feed/",
    ),
    _source(
        "Reuters (World)",
        Category.WORLD,
        "https://feeds.reuters.com/reuters/worldNews",
        "https://feeds.reuters.com/Reuters/worldNews",
    ),
    _source("WSJ (World)", Category.WORLD, "https://feeds.a.dj.com/rss/RSSWorldNews.xml"),

    # Cybersecurity
    _source("Dark Reading", Category.CYBER, "https://www.darkreading.com/rss.xml"),
    _source("The Hacker News", Category.CYBER, "https://thehackernews.com/feeds/posts/default?alt=rss"),
    _source(
        "Cybersecurity Hub",
        Category.CYBER,
        "https://www.cshub.com/rss.xml",
        "https://cshub.com/rss.xml",
    ),
    _source("The Hill (Cyber)", Category.CYBER, "https://thehill.com/policy/cybersecurity/feed/"),
)


# Section pages that answer with a challenge page but have a direct feed
# mirror.  Order matters: the more specific section must come first.
SECTION_MIRRORS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"reuters\.com/world/us/?$", re.I), "https://feeds.reuters.com/reuters/USNews"),
    (re.compile(r"reuters\.com/world/?$", re.I), "https://feeds.reuters.com/reuters/worldNews"),
)


def mirror_for(url: str) -> Optional[str]:
    """Return the known direct-feed mirror for a blocked section URL."""
    for pattern, mirror in SECTION_MIRRORS:
        if pattern.search(url or ""):
            return mirror
    return None
