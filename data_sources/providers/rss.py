"""
RSS Feed Collector - RSS/Atom news feed adapter.

Fetches the feed over aiohttp and parses it with feedparser.
No authentication required.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp
import feedparser

from data_sources.base import BaseCollector
from data_sources.exceptions import NormalizationError
from data_sources.models import DataCategory, DataPoint
from data_sources.registry import register_collector_type


logger = logging.getLogger(__name__)


def _entry_timestamp(entry: Any) -> Optional[datetime]:
    """Published (or updated) time of a feed entry, UTC."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
    return None


def _entry_content(entry: Any) -> str:
    summary = entry.get("summary", "") or entry.get("description", "")
    if not summary and entry.get("content"):
        summary = entry["content"][0].get("value", "")
    return summary.strip()


@register_collector_type("rss")
class RssFeedCollector(BaseCollector):
    """
    RSS/Atom feed collector.

    Each feed entry becomes one DataPoint; the entry id is derived from
    source, link and title so that repeated fetches give stable ids.
    """

    DEFAULT_MAX_ITEMS = 50

    def __init__(
        self,
        name: str,
        url: str,
        category: DataCategory = DataCategory.NEWS_MEDIA,
        reliability: float = 0.7,
        rate_limit: Optional[int] = None,
        timeout: float = BaseCollector.DEFAULT_TIMEOUT,
        max_items: int = DEFAULT_MAX_ITEMS,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(
            name=name,
            category=category,
            reliability=reliability,
            rate_limit=rate_limit,
            timeout=timeout,
            query={"url": url, "max_items": max_items},
            session=session,
        )
        self._url = url
        self._max_items = max_items

    async def collect(self) -> list[DataPoint]:
        logger.debug(f"[{self._name}] Fetching RSS feed from {self._url}")
        body = await self._request("GET", self._url)
        return self.parse(body)

    def parse(self, body: str) -> list[DataPoint]:
        """
        Parse a feed document into data points.

        Raises:
            NormalizationError: the document is not a feed
        """
        feed = feedparser.parse(body)

        entries = feed.get("entries", [])
        if feed.get("bozo") and not entries:
            raise NormalizationError(
                message=f"Unparseable feed: {feed.get('bozo_exception')}",
                source_name=self._name,
                raw_data=body,
            )
        if feed.get("bozo"):
            logger.warning(f"[{self._name}] Feed parsing warning: {feed.get('bozo_exception')}")

        collected_at = datetime.now(timezone.utc)
        points = []
        for entry in entries[: self._max_items]:
            title = entry.get("title", "").strip()
            content = _entry_content(entry)
            if not title and not content:
                continue

            link = entry.get("link", "") or entry.get("id", "")
            id_key = f"{self._name}:{link}:{title}"
            points.append(DataPoint(
                id=hashlib.sha256(id_key.encode()).hexdigest(),
                source=self._name,
                title=title or None,
                content=content or title,
                url=link or None,
                published_at=_entry_timestamp(entry),
                collected_at=collected_at,
                category=self._category,
                reliability=self._reliability,
                metadata={"feed_title": feed.get("feed", {}).get("title", "")},
            ))

        logger.info(f"[{self._name}] Parsed {len(points)} items from feed")
        return points
