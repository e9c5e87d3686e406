"""
Providers package - Collector implementations.

Importing this package registers every collector type.
"""

from data_sources.providers.json_api import NewsApiCollector
from data_sources.providers.rss import RssFeedCollector


__all__ = [
    "NewsApiCollector",
    "RssFeedCollector",
]
