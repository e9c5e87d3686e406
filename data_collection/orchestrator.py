"""
Data Collection - Collection Orchestrator.

============================================================
RESPONSIBILITY
============================================================
Runs every registered collector concurrently and merges the
results into one immutable AggregatedData snapshot.

- Bounded parallelism (semaphore admission gate)
- Per-source token bucket, per-call timeout, retry with backoff
- Global deadline: stragglers are cancelled and recorded as
  failed sources, never a fatal error
- Shared cache keyed by (source, query parameters)
- Deduplication and quality filtering after all sources settle
- Quorum check on the number of successful sources

============================================================
FLOW
============================================================
collectors ──► [cache hit?] ──yes──────────────────────┐
                  │ no                                  │
                  ▼                                     │
           semaphore ► rate limit ► collect() ◄─┐       │
                  │ failure (transient)  backoff┘       │
                  ▼ success                             ▼
           per-source dedup ► cache write ─► completed results
                                                        │
          deadline ► cancel pending ► "deadline exceeded"
                                                        ▼
                      quorum ► global dedup ► quality ► snapshot

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from core.clock import ClockProtocol, SystemClock
from core.constants import DEADLINE_EXCEEDED_REASON
from core.exceptions import QuorumError
from core.metrics import MetricsRegistry
from data_collection.cache import TimedCache
from data_collection.config import CollectionConfig, SourceSettings
from data_collection.deduplication import Deduplicator, DeduplicatorConfig
from data_collection.quality import DataQualityScorer, QualityFilter
from data_collection.rate_limiter import RateLimiter
from data_sources.base import Collector
from data_sources.exceptions import CollectionError, CollectorTimeoutError, RateLimitError
from data_sources.models import AggregatedData, DataPoint


logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


# =============================================================
# SOURCE OUTCOME
# =============================================================


@dataclass(frozen=True)
class SourceOutcome:
    """What one source contributed to a run."""
    source: str
    points: Tuple[DataPoint, ...] = ()
    error: Optional[str] = None
    from_cache: bool = False
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None


def describe_failure(error: BaseException) -> str:
    """Failure reason recorded in the snapshot."""
    if isinstance(error, CollectionError):
        return f"{type(error).__name__}: {error.message}"
    return f"{type(error).__name__}: {error}"


# =============================================================
# ORCHESTRATOR
# =============================================================


class CollectionOrchestrator:
    """
    Concurrent, deadline-bounded collection across all sources.

    The cache and rate limiter belong to the orchestrator instance and
    persist across runs; everything else is per run.
    """

    def __init__(
        self,
        config: Optional[CollectionConfig] = None,
        metrics: Optional[MetricsRegistry] = None,
        clock: Optional[ClockProtocol] = None,
        cache: Optional[TimedCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._config = config or CollectionConfig()
        self._metrics = metrics or MetricsRegistry()
        self._clock = clock or SystemClock()
        self._cache = cache or TimedCache(self._clock)
        self._rate_limiter = rate_limiter or RateLimiter(
            clock=self._clock,
            sleep=sleep,
            max_wait=self._config.rate_limit_max_wait,
        )
        self._sleep = sleep

    @property
    def config(self) -> CollectionConfig:
        return self._config

    @property
    def cache(self) -> TimedCache:
        return self._cache

    # =========================================================
    # PUBLIC API
    # =========================================================

    async def collect_all(
        self,
        collectors: Iterable[Collector],
        config: Optional[CollectionConfig] = None,
    ) -> AggregatedData:
        """
        Run all collectors and build the snapshot.

        Raises:
            QuorumError: fewer sources succeeded than min_successful_sources
        """
        config = config or self._config
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + config.collection_timeout
        semaphore = asyncio.Semaphore(config.max_parallel_collectors)
        deduplicator = Deduplicator(DeduplicatorConfig(similarity_threshold=config.similarity_threshold))

        # completed results only ever get added
        outcomes: Dict[str, SourceOutcome] = {}
        tasks: Dict[str, asyncio.Task] = {}

        for collector in collectors:
            name = collector.source_name()
            if name in tasks:
                logger.warning(f"[{name}] Duplicate source name, skipping second collector")
                continue
            tasks[name] = asyncio.create_task(
                self._run_source(collector, config, semaphore, deadline, deduplicator, outcomes),
                name=f"collect:{name}",
            )

        logger.info(
            f"Collecting from {len(tasks)} sources "
            f"(parallel={config.max_parallel_collectors}, timeout={config.collection_timeout}s)"
        )

        if tasks:
            try:
                done, pending = await asyncio.wait(
                    tasks.values(),
                    timeout=max(0.0, deadline - loop.time()),
                )
            except asyncio.CancelledError:
                for task in tasks.values():
                    task.cancel()
                await asyncio.gather(*tasks.values(), return_exceptions=True)
                logger.warning(f"Collection cancelled with {len(outcomes)} of {len(tasks)} sources settled")
                raise
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"Global deadline reached, cancelled {len(pending)} collectors")

            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()

        for name in tasks:
            if name not in outcomes:
                outcomes[name] = SourceOutcome(source=name, error=DEADLINE_EXCEEDED_REASON)
                self._metrics.increment("collection.failures", labels={"source": name})

        duration = loop.time() - started
        return self._build_snapshot(outcomes, config, deduplicator, duration)

    # =========================================================
    # PER-SOURCE EXECUTION
    # =========================================================

    async def _run_source(
        self,
        collector: Collector,
        config: CollectionConfig,
        semaphore: asyncio.Semaphore,
        deadline: float,
        deduplicator: Deduplicator,
        outcomes: Dict[str, SourceOutcome],
    ) -> None:
        name = collector.source_name()
        labels = {"source": name}
        settings = config.settings_for(name)
        key = self._cache.make_key(name, collector.query_params())

        cached = self._cache.get(key, settings.cache_duration)
        if cached is not None:
            self._metrics.increment("collection.cache_hits", labels=labels)
            logger.debug(f"[{name}] Served {len(cached)} points from cache")
            outcomes[name] = SourceOutcome(source=name, points=cached, from_cache=True)
            return

        async with semaphore:
            try:
                points, attempts = await self._collect_with_retry(collector, config, settings, deadline)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                reason = describe_failure(e)
                self._metrics.increment("collection.failures", labels=labels)
                logger.warning(f"[{name}] Collection failed: {reason}")
                outcomes[name] = SourceOutcome(source=name, error=reason)
                return

        # a point is never more reliable than the source that produced it
        ceiling = collector.reliability_score()
        points = [p.capped_reliability(ceiling) for p in points]
        own = tuple(deduplicator.deduplicate(points))
        outcomes[name] = SourceOutcome(source=name, points=own, attempts=attempts)
        await self._cache.put(key, own)

    async def _collect_with_retry(
        self,
        collector: Collector,
        config: CollectionConfig,
        settings: SourceSettings,
        deadline: float,
    ) -> Tuple[List[DataPoint], int]:
        """
        One collector call with rate limiting, timeout and retries.

        Every wait is capped by the time left before the deadline.
        """
        loop = asyncio.get_running_loop()
        name = collector.source_name()
        labels = {"source": name}
        policy = config.retry_policy()
        rate_limit = settings.rate_limit or collector.rate_limit()
        attempt = 0

        while True:
            attempt += 1
            self._metrics.increment("collection.attempts", labels=labels)
            call_started = loop.time()

            try:
                remaining = deadline - loop.time()
                await self._rate_limiter.acquire(name, rate_limit, max_wait=remaining)

                per_call = min(collector.timeout(), deadline - loop.time())
                if per_call <= 0:
                    raise CollectorTimeoutError(
                        message="No time left before the collection deadline",
                        source_name=name,
                        timeout_seconds=0.0,
                    )
                try:
                    points = await asyncio.wait_for(collector.collect(), timeout=per_call)
                except asyncio.TimeoutError as e:
                    raise CollectorTimeoutError(
                        message=f"Call exceeded {per_call:.1f}s",
                        source_name=name,
                        timeout_seconds=per_call,
                    ) from e

                latency_ms = (loop.time() - call_started) * 1000
                self._metrics.increment("collection.successes", labels=labels)
                self._metrics.observe("collection.latency_ms", latency_ms, labels=labels)
                logger.debug(f"[{name}] Collected {len(points)} points in {latency_ms:.1f}ms (attempt {attempt})")
                return list(points), attempt

            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not policy.should_retry(e, attempt):
                    raise

                delay = policy.delay_for(attempt)
                if isinstance(e, RateLimitError) and e.retry_after_seconds:
                    delay = max(delay, e.retry_after_seconds)

                if loop.time() + delay >= deadline:
                    logger.warning(f"[{name}] Backoff of {delay:.1f}s would pass the deadline, giving up")
                    raise

                self._metrics.increment("collection.retries", labels=labels)
                logger.warning(
                    f"[{name}] {describe_failure(e)}, "
                    f"retrying in {delay:.1f}s (attempt {attempt}/{policy.max_attempts})"
                )
                await self._sleep(delay)

    # =========================================================
    # SNAPSHOT
    # =========================================================

    def _build_snapshot(
        self,
        outcomes: Dict[str, SourceOutcome],
        config: CollectionConfig,
        deduplicator: Deduplicator,
        duration: float,
    ) -> AggregatedData:
        succeeded = [o for o in outcomes.values() if o.succeeded]
        failed = {o.source: o.error for o in outcomes.values() if not o.succeeded}

        if len(succeeded) < config.min_successful_sources:
            logger.error(
                f"Quorum not met: {len(succeeded)} of {len(outcomes)} sources succeeded "
                f"(required {config.min_successful_sources})"
            )
            raise QuorumError(
                f"Only {len(succeeded)} sources succeeded, {config.min_successful_sources} required",
                succeeded=len(succeeded),
                required=config.min_successful_sources,
                failed_sources=sorted(failed),
            )

        merged = [point for outcome in succeeded for point in outcome.points]
        unique = deduplicator.deduplicate(merged)
        quality = QualityFilter(
            min_reliability_score=config.min_reliability_score,
            require_relevance=config.require_relevance,
            min_quality_score=config.min_quality_score,
            scorer=DataQualityScorer(clock=self._clock),
        ).apply(unique)

        snapshot = AggregatedData(
            data_points=quality.kept,
            collected_at=self._clock.now(),
            sources_succeeded=len(succeeded),
            failed_sources=failed,
            duration_seconds=duration,
            cache_hits=tuple(sorted(o.source for o in succeeded if o.from_cache)),
        )

        self._metrics.set_gauge("collection.data_points", len(snapshot))
        self._metrics.set_gauge("collection.sources_failed", len(failed))
        self._metrics.observe("collection.duration_ms", duration * 1000)
        logger.info(
            f"Collection finished in {duration:.2f}s: {len(snapshot)} points "
            f"({len(merged) - len(unique)} duplicates, "
            f"{len(unique) - len(quality.kept)} below quality), "
            f"{len(succeeded)} sources ok, {len(failed)} failed"
        )
        return snapshot
