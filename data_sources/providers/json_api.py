"""
News API Collector - JSON news search adapter.

Targets NewsAPI-style endpoints: GET with a keyword query, response
body `{"status": "ok", "articles": [...]}`.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from data_sources.base import BaseCollector
from data_sources.exceptions import NormalizationError
from data_sources.models import DataCategory, DataPoint
from data_sources.registry import register_collector_type


logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@register_collector_type("news_api")
class NewsApiCollector(BaseCollector):
    """
    Keyword search against a JSON news API.

    The API key is read from the environment variable named by
    `api_key_env` so that keys never live in the sources file.
    """

    def __init__(
        self,
        name: str,
        url: str,
        query: str,
        category: DataCategory = DataCategory.NEWS_MEDIA,
        reliability: float = 0.6,
        rate_limit: Optional[int] = 100,
        timeout: float = BaseCollector.DEFAULT_TIMEOUT,
        api_key: Optional[str] = None,
        api_key_env: str = "NEWS_API_KEY",
        page_size: int = 50,
        language: str = "en",
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(
            name=name,
            category=category,
            reliability=reliability,
            rate_limit=rate_limit,
            timeout=timeout,
            query={"q": query, "pageSize": page_size, "language": language},
            session=session,
        )
        self._url = url
        self._api_key = api_key or os.getenv(api_key_env)

    async def collect(self) -> list[DataPoint]:
        headers = {"X-Api-Key": self._api_key} if self._api_key else None
        payload = await self._make_request("GET", self._url, params=self.query_params(), headers=headers)
        return self.normalize(payload)

    def normalize(self, payload: Any) -> list[DataPoint]:
        """
        Convert an API response into data points.

        Raises:
            NormalizationError: the response has no article list
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("articles"), list):
            raise NormalizationError(
                message="Response has no 'articles' list",
                source_name=self._name,
                raw_data=payload,
                field_name="articles",
            )

        collected_at = datetime.now(timezone.utc)
        points = []
        for article in payload["articles"]:
            if not isinstance(article, dict):
                continue
            title = (article.get("title") or "").strip()
            content = (article.get("description") or article.get("content") or "").strip()
            if not title and not content:
                continue

            publisher = article.get("source") or {}
            points.append(DataPoint(
                source=self._name,
                title=title or None,
                content=content or title,
                url=article.get("url"),
                published_at=_parse_timestamp(article.get("publishedAt")),
                collected_at=collected_at,
                category=self._category,
                reliability=self._reliability,
                metadata={
                    "publisher": publisher.get("name", "") if isinstance(publisher, dict) else "",
                    "author": article.get("author") or "",
                },
            ))

        logger.info(f"[{self._name}] Normalized {len(points)} articles")
        return points
