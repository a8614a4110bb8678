"""
RSS / Atom item extraction.

Real-world feeds are frequently not well-formed XML.  Parsing therefore
happens in two stages:

* ``parse_structured`` hands the text to ``feedparser`` after
  ``sanitize_entities`` has rewritten the HTML named entities that XML does
  not define.  It raises ``ParseFailed`` when feedparser flags the document
  as malformed (``bozo``) or finds no items/entries.
* ``parse_fallback`` pulls regularly shaped ``<item>``/``<entry>`` blocks
  out of the raw text with bounded, non-greedy patterns.  It is used when
  the structured pass fails or comes back empty.

Only title, link and publish time are extracted.  Both stages cap their
output at the per-source item limit.
"""

from __future__ import annotations

import html
import io
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Iterable, List, Optional, Sequence

import feedparser

from ..models.articles import Article, ParsedVia, Source
from .errors import ParseFailed

logger = logging.getLogger(__name__)

FEED_ITEM_LIMIT = 25
UNTITLED = "(untitled)"

# HTML named references that show up in feeds but are not defined in XML.
ENTITY_MAP = {
    "nbsp": "#160",
    "ndash": "#8211",
    "mdash": "#8212",
    "middot": "#183",
    "copy": "#169",
    "reg": "#174",
    "trade": "#8482",
    "rsquo": "#8217",
    "lsquo": "#8216",
    "rdquo": "#8221",
    "ldquo": "#8220",
    "hellip": "#8230",
    "euro": "#8364",
    "laquo": "#171",
    "raquo": "#187",
}
XML_ENTITIES = frozenset({"amp", "lt", "gt", "quot", "apos"})

DATE_FIELDS = ("pubDate", "published", "updated", "dc:date")

_ENTITY_RE = re.compile(r"&([a-zA-Z]+);")
_XML_DECL_RE = re.compile(r"^\s*<\?xml[^>]*\?>")
_CDATA_RE = re.compile(r"^<!\[CDATA\[(.*)\]\]>$", re.S)
_ITEM_BLOCK_RE = re.compile(r"<item\b[^>]*>([\s\S]*?)</item>", re.I)
_ENTRY_BLOCK_RE = re.compile(r"<entry\b[^>]*>([\s\S]*?)</entry>", re.I)
_LINK_TAG_RE = re.compile(r"<link\b[^>]*>", re.I)
_ATTR_RE = re.compile(r"([\w:-]+)\s*=\s*[\"']([^\"']*)[\"']")


# -----------------------
# Entity sanitizing
# -----------------------
def sanitize_entities(xml_text: Optional[str]) -> str:
    """Rewrite known HTML named entities into numeric character references."""
    if not xml_text:
        return ""

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in XML_ENTITIES:
            return match.group(0)
        numeric = ENTITY_MAP.get(name)
        if numeric:
            return f"&{numeric};"
        # Unknown names stay; the structured parser may reject the document
        # and the fallback parser takes over.
        return match.group(0)

    return _ENTITY_RE.sub(_replace, xml_text)


# -----------------------
# Shared helpers
# -----------------------
def has_web_scheme(url: Optional[str]) -> bool:
    return bool(url) and re.match(r"^https?://", url.strip(), re.I) is not None



def parse_published(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 822 or ISO 8601 timestamp into an aware UTC datetime.

    Anything that cannot be represented as a UTC datetime counts as
    unparsable and yields ``None``.
    """
    if not value:
        return None
    s = value.strip()
    if not s:
        return None
    dt: Optional[datetime]
    try:
        dt = parsedate_to_datetime(s)
    except (TypeError, ValueError, IndexError):
        dt = None
    if dt is None:
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def _first_web_link(candidates: Iterable[Callable[[], Optional[str]]]) -> Optional[str]:
    for strategy in candidates:
        value = strategy()
        if has_web_scheme(value):
            return value.strip()
    return None


def _first_date(values: Iterable[Optional[str]]) -> Optional[datetime]:
    for value in values:
        parsed = parse_published(value)
        if parsed is not None:
            return parsed
    return None


def _make_article(
    source: Source,
    title: Optional[str],
    link: str,
    published_at: Optional[datetime],
    now: datetime,
    parsed_via: ParsedVia,
) -> Article:
    return Article(
        title=(title or "").strip() or UNTITLED,
        link=link,
        source=source.name,
        category=source.category,
        published_at=published_at or now,
        parsed_via=parsed_via,
    )


# -----------------------
# Structured parsing
# -----------------------
# The text is already decoded; any declared encoding no longer applies.
_UTF8_XML_HEADERS = {"content-type": "application/xml; charset=utf-8"}
ENTRY_DATE_FIELDS = ("published_parsed", "updated_parsed")


def _entry_date(entry: Any) -> Optional[datetime]:
    """First usable feedparser ``*_parsed`` struct_time (always UTC)."""
    for key in ENTRY_DATE_FIELDS:
        value = entry.get(key)
        if not value:
            continue
        try:
            return datetime(*tuple(value)[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            continue
    return None


def _entry_href(entry: Any, rel: Optional[str] = None) -> Optional[str]:
    for link in entry.get("links") or ():
        href = (link.get("href") or "").strip()
        if not href:
            continue
        if rel is None or (link.get("rel") or "").lower() == rel:
            return href
    return None


def parse_structured(
    text: str,
    source: Source,
    request_url: str,
    *,
    limit: int = FEED_ITEM_LIMIT,
    now: Optional[datetime] = None,
) -> List[Article]:
    """Parse (already sanitized) feed text with feedparser."""
    now = now or datetime.now(timezone.utc)
    cleaned = _XML_DECL_RE.sub("", (text or "").lstrip("\ufeff"), count=1).strip()
    if not cleaned:
        raise ParseFailed("empty document")

    feed = feedparser.parse(
        io.BytesIO(cleaned.encode("utf-8", "replace")),
        response_headers=_UTF8_XML_HEADERS,
    )
    if feed.bozo and not isinstance(feed.get("bozo_exception"), feedparser.CharacterEncodingOverride):
        raise ParseFailed(str(feed.get("bozo_exception") or "malformed feed"))
    if not feed.entries:
        raise ParseFailed("no item or entry nodes")

    articles: List[Article] = []
    for entry in feed.entries[: max(0, limit)]:
        # RSS <guid> surfaces as ``id``.
        link = _first_web_link((
            lambda: entry.get("link"),
            lambda: _entry_href(entry, rel="alternate"),
            lambda: _entry_href(entry),
            lambda: entry.get("id"),
        )) or request_url
        articles.append(
            _make_article(source, entry.get("title"), link, _entry_date(entry), now, ParsedVia.STRUCTURED)
        )
    return articles


# -----------------------
# Fallback (pattern) parsing
# -----------------------
def unwrap_cdata(value: Optional[str]) -> str:
    value = (value or "").strip()
    match = _CDATA_RE.match(value)
    if match:
        return match.group(1).strip()
    return value


def _tag_text(chunk: str, tag: str) -> Optional[str]:
    """Inner text of the first ``tag``.

    CDATA content is taken literally; anything else has its character
    references decoded.
    """
    pattern = re.compile(
        rf"<{re.escape(tag)}(?:\s[^>]*?)?(?<!/)>([\s\S]*?)</{re.escape(tag)}>",
        re.I,
    )
    match = pattern.search(chunk)
    if not match:
        return None
    inner = match.group(1).strip()
    if _CDATA_RE.match(inner):
        return unwrap_cdata(inner) or None
    return html.unescape(inner).strip() or None


def _link_attrs(chunk: str) -> List[dict]:
    return [
        {k.lower(): v for k, v in _ATTR_RE.findall(tag)}
        for tag in _LINK_TAG_RE.findall(chunk)
    ]


def _attr_href(chunk: str, rel: Optional[str] = None) -> Optional[str]:
    for attrs in _link_attrs(chunk):
        href = (attrs.get("href") or "").strip()
        if not href:
            continue
        if rel is None or attrs.get("rel", "").strip().lower() == rel:
            return html.unescape(href)
    return None


def _fallback_articles(
    chunks: Sequence[str],
    source: Source,
    request_url: str,
    link_strategies: Callable[[str], Sequence[Callable[[], Optional[str]]]],
    limit: int,
    now: datetime,
) -> List[Article]:
    articles: List[Article] = []
    for chunk in chunks:
        if len(articles) >= limit:
            break
        title = _tag_text(chunk, "title")
        link = _first_web_link(link_strategies(chunk)) or request_url
        published = _first_date(_tag_text(chunk, name) for name in DATE_FIELDS)
        articles.append(_make_article(source, title, link, published, now, ParsedVia.FALLBACK))
    return articles


def parse_fallback(
    raw_text: str,
    source: Source,
    request_url: str,
    *,
    limit: int = FEED_ITEM_LIMIT,
    now: Optional[datetime] = None,
) -> List[Article]:
    """Extract items from text a strict XML parser could not handle."""
    now = now or datetime.now(timezone.utc)
    text = raw_text or ""
    limit = max(0, limit)

    items = _ITEM_BLOCK_RE.findall(text)
    if items:
        return _fallback_articles(
            items,
            source,
            request_url,
            lambda chunk: (
                lambda: _tag_text(chunk, "link"),
                lambda: _attr_href(chunk),
                lambda: _tag_text(chunk, "guid"),
            ),
            limit,
            now,
        )

    entries = _ENTRY_BLOCK_RE.findall(text)
    return _fallback_articles(
        entries,
        source,
        request_url,
        lambda chunk: (
            lambda: _attr_href(chunk, rel="alternate"),
            lambda: _attr_href(chunk),
            lambda: _tag_text(chunk, "id"),
        ),
        limit,
        now,
    )


def parse_feed(
    text: str,
    source: Source,
    request_url: str,
    *,
    limit: int = FEED_ITEM_LIMIT,
    now: Optional[datetime] = None,
) -> List[Article]:
    """Structured parse of the sanitized text, falling back to patterns."""
    try:
        articles = parse_structured(sanitize_entities(text), source, request_url, limit=limit, now=now)
    except ParseFailed as e:
        logger.debug(f"Structured parse failed for {source.name} ({request_url}): {e}")
        articles = []
    if articles:
        return articles
    return parse_fallback(text, source, request_url, limit=limit, now=now)
