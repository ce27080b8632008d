"""
Ingestion Service

Drives the bridge engine from relays: periodic polling and a live
subscription. Also wires a complete runtime from a BridgeConfig.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence
import asyncio
import logging

from bridge.config import BridgeConfig
from bridge.contracts.base import Error, ErrorCode
from bridge.contracts.events import CycleReport, CycleStatus, NostrEvent
from bridge.delivery.context import ContextResolver
from bridge.engine import BridgeEngine
from .contracts import EventFilter, FetchBatch, StreamMarker, account_filters
from .fetcher import ConnectFactory, RelayFetcher
from .merger import FanInMerger
from .registry import RelayRegistry
from .subscription import RelaySubscription

logger = logging.getLogger(__name__)


class PollingService:
    """
    Pull path.

    DESIGN:
    =======
    1. Query primaries from the cursor's lower bound
    2. Query fallbacks only when primaries returned nothing
    3. Merge, sort, and hand the batch to the engine
    4. Total source failure is a FAILED cycle; state is untouched
    """

    def __init__(
        self,
        engine: BridgeEngine,
        registry: RelayRegistry,
        fetcher: RelayFetcher,
        merger: Optional[FanInMerger] = None,
    ):
        self._engine = engine
        self._registry = registry
        self._fetcher = fetcher
        self._merger = merger or FanInMerger()
        self._cycles = 0

    async def poll_once(self) -> CycleReport:
        config = self._engine.config
        now = self._engine.clock.now()
        since = self._engine.query_since(now)
        filters = account_filters(config.pubkey, config.pipeline.monitored_kinds, since)
        logger.info(f"Polling {self._registry.total_count} relays since {since}")

        batch = await self._fetch(filters)
        self._cycles += 1

        if batch is None or batch.all_failed:
            failed = batch.failed_count if batch else 0
            return self._engine.failed_cycle(
                Error.now(ErrorCode.SOURCE_UNAVAILABLE, "No relay could be reached").with_context(
                    "relays", str(self._registry.total_count)),
                since=since,
                sources_failed=failed,
            )

        events = self._merger.merge(batch.event_groups())
        logger.info(f"Found {len(events)} events from {batch.ok_count} relays")
        return await self._engine.process_batch(
            events,
            since=since,
            now=now,
            sources_ok=batch.ok_count,
            sources_failed=batch.failed_count,
        )

    async def run_forever(
        self,
        stop: Optional[asyncio.Event] = None,
        max_cycles: Optional[int] = None,
    ) -> List[CycleReport]:
        """
        Poll until `stop` is set or `max_cycles` have run.

        After a rate-limited cycle the next poll waits for retry_after
        instead of the regular interval.
        """
        stop = stop or asyncio.Event()
        interval = self._engine.config.ingestion.poll_interval_seconds
        reports: List[CycleReport] = []

        while not stop.is_set():
            report = await self.poll_once()
            reports.append(report)
            if max_cycles is not None and len(reports) >= max_cycles:
                break

            delay = interval
            if report.status == CycleStatus.RATE_LIMITED and report.retry_after is not None:
                delay = report.retry_after
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        return reports

    async def _fetch(self, filters: Sequence[EventFilter]) -> Optional[FetchBatch]:
        primaries = self._registry.primary_sources()
        fallbacks = self._registry.fallback_sources()

        primary_batch = None
        if primaries:
            primary_batch = await self._fetcher.query_many(primaries, filters)
            if primary_batch.event_count > 0 or not fallbacks:
                return primary_batch
            logger.info("Primary relays returned nothing, trying fallbacks")

        if not fallbacks:
            return primary_batch

        fallback_batch = await self._fetcher.query_many(fallbacks, filters)
        if primary_batch is None:
            return fallback_batch
        return FetchBatch.combine(primary_batch, fallback_batch)

    @property
    def cycles(self) -> int:
        return self._cycles


class LiveSubscriptionService:
    """
    Push path over a live relay subscription.

    Stored events are buffered until the backlog is exhausted and then
    processed as one merged batch; live events are processed one by one.
    """

    def __init__(
        self,
        engine: BridgeEngine,
        registry: RelayRegistry,
        connect: Optional[ConnectFactory] = None,
        merger: Optional[FanInMerger] = None,
        reconnect_delay: float = 30.0,
    ):
        self._engine = engine
        self._registry = registry
        self._connect = connect
        self._merger = merger or FanInMerger()
        self._reconnect_delay = reconnect_delay

    def subscription(self, since: int) -> RelaySubscription:
        config = self._engine.config
        sources = self._registry.primary_sources() or self._registry.fallback_sources()
        return RelaySubscription(
            sources,
            account_filters(config.pubkey, config.pipeline.monitored_kinds, since),
            eose_timeout=config.ingestion.eose_timeout_seconds,
            connect_timeout=config.ingestion.query_timeout_seconds,
            connect=self._connect,
        )

    async def listen(self, max_live_events: Optional[int] = None) -> List[CycleReport]:
        """
        Consume one subscription until it ends or `max_live_events` live
        events have been processed.
        """
        now = self._engine.clock.now()
        since = self._engine.query_since(now)
        stream = self.subscription(since).stream()
        reports: List[CycleReport] = []
        backlog: List[NostrEvent] = []
        in_backlog = True
        live_count = 0

        try:
            async for item in stream:
                if item is StreamMarker.BACKLOG_EXHAUSTED:
                    in_backlog = False
                    logger.info(f"End of stored events ({len(backlog)}). Now listening for new events...")
                    reports.append(await self._engine.process_batch(
                        self._merger.merge([backlog]), since=since,
                    ))
                    backlog = []
                    continue

                if in_backlog:
                    backlog.append(item)
                    continue

                logger.info(f"Received live event {item.short_id} (kind {item.kind})")
                reports.append(await self._engine.process_event(item))
                live_count += 1
                if max_live_events is not None and live_count >= max_live_events:
                    break
        finally:
            await stream.aclose()

        return reports

    async def run_forever(self, stop: Optional[asyncio.Event] = None):
        """Listen, reconnecting after each dropped subscription."""
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.listen()
            logger.warning(f"Subscription ended, reconnecting in {self._reconnect_delay}s")
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._reconnect_delay)
            except asyncio.TimeoutError:
                pass


# =============================================================================
# RUNTIME WIRING
# =============================================================================

class RelayLookup:
    """EventLookup for the context resolver: one query across the relay sets."""

    def __init__(self, registry: RelayRegistry, fetcher: RelayFetcher, merger: Optional[FanInMerger] = None):
        self._registry = registry
        self._fetcher = fetcher
        self._merger = merger or FanInMerger()

    async def __call__(self, event_filter: Dict[str, Any]) -> Sequence[NostrEvent]:
        sources = self._registry.primary_sources() or self._registry.fallback_sources()
        batch = await self._fetcher.query_many(sources, (EventFilter.from_dict(event_filter),))
        return self._merger.merge(batch.event_groups())


@dataclass
class BridgeRuntime:
    """Everything a process needs to run the bridge."""
    config: BridgeConfig
    engine: BridgeEngine
    registry: RelayRegistry
    fetcher: RelayFetcher
    polling: PollingService
    live: LiveSubscriptionService

    async def check_relays(self) -> FetchBatch:
        """
        Connectivity check: ask every configured relay for at most one
        event of the account. Nothing is processed or delivered.
        """
        config = self.config
        filters = tuple(
            replace(f, limit=1)
            for f in account_filters(config.pubkey, config.pipeline.monitored_kinds)
        )
        return await self.fetcher.query_many(tuple(self.registry.all_sources()), filters)


def create_runtime(
    config: BridgeConfig,
    connect: Optional[ConnectFactory] = None,
    **engine_overrides,
) -> BridgeRuntime:
    """Create a bridge runtime from a validated config."""
    registry = RelayRegistry.from_config(config.ingestion)
    fetcher = RelayFetcher(
        query_timeout=config.ingestion.query_timeout_seconds,
        connect_timeout=config.ingestion.query_timeout_seconds,
        connect=connect,
    )
    if 'resolver' not in engine_overrides:
        engine_overrides['resolver'] = ContextResolver(
            RelayLookup(registry, fetcher),
            reply_context=config.pipeline.reply_context,
        )
    engine = BridgeEngine(config, **engine_overrides)
    return BridgeRuntime(
        config=config,
        engine=engine,
        registry=registry,
        fetcher=fetcher,
        polling=PollingService(engine, registry, fetcher),
        live=LiveSubscriptionService(engine, registry, connect=connect),
    )
