"""
Collector Registry - Central registry for threat data collectors.

Provides:
- Lookup table of collector types, filled at import time by the
  providers via @register_collector_type
- Construction of collectors from configuration entries
- Registration and discovery of collector instances
"""

import logging
from typing import Any, Callable, Iterable, Optional

from core.exceptions import ConfigurationError
from data_sources.base import Collector
from data_sources.models import DataCategory


logger = logging.getLogger(__name__)


CollectorFactory = Callable[..., Collector]

_COLLECTOR_TYPES: dict[str, CollectorFactory] = {}


def register_collector_type(type_name: str) -> Callable[[CollectorFactory], CollectorFactory]:
    """Class decorator adding a collector variant to the lookup table."""

    def decorator(factory: CollectorFactory) -> CollectorFactory:
        if type_name in _COLLECTOR_TYPES:
            logger.warning(f"Collector type '{type_name}' already registered, replacing")
        _COLLECTOR_TYPES[type_name] = factory
        return factory

    return decorator


def available_collector_types() -> list[str]:
    """List registered collector type names."""
    return sorted(_COLLECTOR_TYPES)


def create_collector(type_name: str, **options: Any) -> Collector:
    """
    Build one collector from its type name and options.

    Raises:
        ConfigurationError: unknown type or options the type rejects
    """
    factory = _COLLECTOR_TYPES.get(type_name)
    if factory is None:
        raise ConfigurationError(
            f"Unknown collector type '{type_name}' "
            f"(available: {', '.join(available_collector_types()) or 'none'})",
            config_key="type",
            actual_value=type_name,
        )

    if "category" in options and isinstance(options["category"], str):
        try:
            options["category"] = DataCategory(options["category"])
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown data category '{options['category']}'",
                config_key="category",
                actual_value=options["category"],
                cause=e,
            ) from e

    try:
        return factory(**options)
    except TypeError as e:
        raise ConfigurationError(
            f"Invalid options for collector type '{type_name}': {e}",
            config_key=type_name,
            cause=e,
        ) from e


class CollectorRegistry:
    """
    Central registry for collector instances.

    Usage:
        registry = CollectorRegistry()
        registry.register(RssFeedCollector(name="reuters", url=...))
        snapshot = await orchestrator.collect_all(registry.collectors())
    """

    def __init__(self, collectors: Optional[Iterable[Collector]] = None) -> None:
        self._collectors: dict[str, Collector] = {}
        for collector in collectors or ():
            self.register(collector)

    @classmethod
    def from_config(
        cls,
        source_configs: Iterable[dict[str, Any]],
        **shared_options: Any,
    ) -> "CollectorRegistry":
        """
        Build a registry from configuration entries.

        Each entry needs `type` and `name`; the rest is passed to the
        collector factory. Keys the orchestrator consumes (cache_duration)
        are stripped here. Disabled entries are skipped.
        """
        registry = cls()
        for entry in source_configs:
            options = dict(entry)
            if not options.pop("enabled", True):
                logger.info(f"Source '{options.get('name')}' disabled, skipping")
                continue
            type_name = options.pop("type", None)
            if not type_name or not options.get("name"):
                raise ConfigurationError(
                    "Source entries need both 'type' and 'name'",
                    config_key="sources",
                    actual_value=entry,
                )
            options.pop("cache_duration", None)
            options.update(shared_options)
            registry.register(create_collector(type_name, **options))
        return registry

    def register(self, collector: Collector) -> None:
        """Register a collector instance."""
        if not isinstance(collector, Collector):
            raise ConfigurationError(
                f"{type(collector).__name__} does not implement the Collector protocol",
                actual_value=collector,
            )

        name = collector.source_name()
        if name in self._collectors:
            logger.warning(f"Source '{name}' already registered, replacing")

        self._collectors[name] = collector
        logger.info(f"Registered source '{name}' ({collector.category().value})")

    def unregister(self, name: str) -> Optional[Collector]:
        """Unregister a collector."""
        if name in self._collectors:
            collector = self._collectors.pop(name)
            logger.info(f"Unregistered source '{name}'")
            return collector
        return None

    def get(self, name: str) -> Optional[Collector]:
        """Get a specific collector by name."""
        return self._collectors.get(name)

    def list_sources(self) -> list[str]:
        """List all registered source names in registration order."""
        return list(self._collectors)

    def collectors(self) -> list[Collector]:
        return list(self._collectors.values())

    async def close(self) -> None:
        """Close collectors that hold resources."""
        for collector in self._collectors.values():
            close = getattr(collector, "close", None)
            if close is not None:
                await close()

    def __len__(self) -> int:
        return len(self._collectors)

    def __contains__(self, name: object) -> bool:
        return name in self._collectors
