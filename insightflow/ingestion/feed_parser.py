"""Lightweight RSS item extraction using tag-boundary matching."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_LIMIT = 10

_ITEM_RE = re.compile(r"<item\b[^>]*>(.*?)</item>", re.IGNORECASE | re.DOTALL)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)


@dataclass(frozen=True)
class FeedEntry:
    title: str
    url: str
    published_at: datetime | None = None


def _extract_tag(block: str, tag: str) -> str:
    match = re.search(
        rf"<{tag}\b[^>]*>(.*?)</{tag}>", block, flags=re.IGNORECASE | re.DOTALL
    )
    return match.group(1).strip() if match else ""


def clean_text(value: str) -> str:
    """Strip CDATA wrappers and decode character entities."""
    unwrapped = _CDATA_RE.sub(lambda match: match.group(1), value)
    return html.unescape(unwrapped).strip()


def parse_pub_date(value: str) -> datetime | None:
    """Parse an RFC 822 date; malformed dates yield None."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_feed(xml: str, limit: int = DEFAULT_ENTRY_LIMIT) -> list[FeedEntry]:
    """Extract up to ``limit`` entries from an RSS body, in document order.

    Blocks missing a title or a link are skipped rather than failing the feed.
    """
    entries: list[FeedEntry] = []
    for match in _ITEM_RE.finditer(xml):
        block = match.group(1)
        title = clean_text(_extract_tag(block, "title"))
        url = clean_text(_extract_tag(block, "link"))
        if not title or not url:
            logger.debug("Skipping feed item without title or link")
            continue
        entries.append(
            FeedEntry(
                title=title,
                url=url,
                published_at=parse_pub_date(clean_text(_extract_tag(block, "pubDate"))),
            )
        )
        if len(entries) >= limit:
            break
    return entries
