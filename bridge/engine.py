"""
Engine Orchestration Module

Runs candidate events through admission and delivery, and owns the only
mutable state of the bridge: the dedup ledger and the progress cursor.

DESIGN PRINCIPLES:
==================
1. Per-event processing is strictly sequential, one sink call at a time
2. Rejections are outcomes, never exceptions and never cycle failures
3. The ledger records an id only after the sink confirmed delivery
4. The cursor advances over timestamps SEEN, decoupled from delivery and
   capped at the current time, except for a bounded hold while the sink
   is rate limiting
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Sequence
import asyncio
import logging

from .config import BridgeConfig
from .contracts.base import Error, ErrorCode, RejectReason, Verdict
from .contracts.events import (
    AuditEventType, CycleReport, CycleStatus, EventContext, EventDisposition,
    EventOutcome, NostrEvent,
)
from .admission import (
    AdmissionWindow, AdmissionWindowFilter, DedupLedger, EventValidator, RelevanceFilter,
)
from .delivery.context import ContextResolver
from .delivery.formatter import DiscordFormatter
from .delivery.sink import DeliveryResult, DiscordWebhookSink
from .observability import AuditTrail
from .temporal import LogicalClock, ProgressCursor

logger = logging.getLogger(__name__)


class BridgeEngine:
    """
    Admission and delivery pipeline for one monitored account.

    PIPELINE (per event):
    =====================
    1. Validator        -> MALFORMED / HASH_MISMATCH / BAD_SIGNATURE
    2. Relevance        -> UNMONITORED_KIND / UNMONITORED_AUTHOR
    3. Admission window -> TOO_OLD / LIKELY_DUPLICATE_PRE_CURSOR
    4. Ledger           -> ALREADY_FORWARDED
    5. Format + deliver -> FORWARDED, then ledger insert

    Ledger and cursor are constructor-injectable so warm and cold starts
    can be reproduced exactly.
    """

    def __init__(
        self,
        config: BridgeConfig,
        sink: Optional[DiscordWebhookSink] = None,
        resolver: Optional[ContextResolver] = None,
        formatter: Optional[DiscordFormatter] = None,
        validator: Optional[EventValidator] = None,
        ledger: Optional[DedupLedger] = None,
        cursor: Optional[ProgressCursor] = None,
        audit: Optional[AuditTrail] = None,
        clock: Optional[LogicalClock] = None,
    ):
        self._config = config
        admission = config.admission
        pipeline = config.pipeline

        self._sink = sink or DiscordWebhookSink(config.webhook_url, timeout=config.sink_timeout_seconds)
        self._resolver = resolver
        self._formatter = formatter or DiscordFormatter(
            link_style=pipeline.link_style,
            reply_context=pipeline.reply_context,
        )
        self._validator = validator or EventValidator()
        self._relevance = RelevanceFilter(pipeline.monitored_kinds, config.pubkey)
        self._window = AdmissionWindowFilter(AdmissionWindow(
            stale_window_seconds=admission.stale_window_seconds,
            recent_grace_seconds=admission.recent_grace_seconds,
        ))
        self._ledger = ledger if ledger is not None else DedupLedger(admission.ledger_capacity)
        self._cursor = cursor if cursor is not None else ProgressCursor()
        self._audit = audit or AuditTrail(layer_name="engine")
        self._clock = clock or LogicalClock.live()

        self._hold_cycles = admission.rate_limit_hold_cycles
        self._held = 0
        self._lock = asyncio.Lock()
        self._last_report: Optional[CycleReport] = None

    # =========================================================================
    # BATCH INTERFACE
    # =========================================================================

    async def process_batch(
        self,
        events: Sequence[NostrEvent],
        since: Optional[int] = None,
        now: Optional[int] = None,
        sources_ok: int = 0,
        sources_failed: int = 0,
    ) -> CycleReport:
        """
        Run an ordered batch through the pipeline and advance the cursor.

        `since` is the query lower bound of a poll; it seeds the cursor on
        a cold start. Push callers leave it None.
        """
        async with self._lock:
            if now is None:
                now = self._clock.now()
            cursor_before = self._cursor.last_seen
            outcomes: List[EventOutcome] = []
            retry_after: Optional[float] = None

            for index, event in enumerate(events):
                outcome, delivery = await self._process(event, now, cursor_before)
                outcomes.append(outcome)

                if delivery is not None and delivery.rate_limited:
                    retry_after = delivery.retry_after
                    outcomes.extend(self._not_attempted(events[index + 1:]))
                    break

            status = CycleStatus.RATE_LIMITED if retry_after is not None else CycleStatus.COMPLETED
            cursor_after = self._update_cursor(events, since, status, now)

            report = CycleReport(
                status=status,
                outcomes=tuple(outcomes),
                cursor_before=cursor_before,
                cursor_after=cursor_after,
                since=since,
                retry_after=retry_after,
                sources_ok=sources_ok,
                sources_failed=sources_failed,
            )
            self._last_report = report
            logger.info(
                f"Cycle {status.value}: {len(outcomes)} events, "
                f"{report.forwarded_count} forwarded, cursor {cursor_before} -> {cursor_after}"
            )
            return report

    async def process_event(self, event: NostrEvent, now: Optional[int] = None) -> CycleReport:
        """Push path: a single event is a batch of one."""
        return await self.process_batch([event], now=now)

    def failed_cycle(
        self,
        error: Error,
        since: Optional[int] = None,
        sources_failed: int = 0,
    ) -> CycleReport:
        """
        Report a cycle that could not read any source.

        Ledger and cursor are left untouched.
        """
        self._audit.record(
            AuditEventType.SOURCE_FAILED, "all_sources_failed",
            message=error.message, sources=sources_failed,
        )
        logger.error(f"Cycle failed: {error.message}")
        report = CycleReport(
            status=CycleStatus.FAILED,
            outcomes=(),
            cursor_before=self._cursor.last_seen,
            cursor_after=self._cursor.last_seen,
            since=since,
            error=error,
            sources_failed=sources_failed,
        )
        self._last_report = report
        return report

    def query_since(self, now: Optional[int] = None) -> int:
        """Lower time bound for the next poll."""
        if now is None:
            now = self._clock.now()
        return self._cursor.query_since(now, self._config.ingestion.lookback_seconds)

    # =========================================================================
    # PER-EVENT PIPELINE
    # =========================================================================

    async def _process(
        self,
        event: NostrEvent,
        now: int,
        last_seen: int,
    ) -> tuple:
        self._audit.record(AuditEventType.EVENT_RECEIVED, "received", event.id, kind=event.kind)

        verdict = self._admit(event, now, last_seen)
        if not verdict:
            return self._rejected(event, verdict), None

        if self._ledger.contains(event.id):
            logger.debug(f"Event {event.short_id} already forwarded, skipping")
            self._audit.record(AuditEventType.EVENT_DUPLICATE, "already_forwarded", event.id)
            return EventOutcome(
                event_id=event.id,
                created_at=event.created_at,
                disposition=EventDisposition.DUPLICATE,
                reason=RejectReason.ALREADY_FORWARDED,
            ), None

        try:
            message = self._formatter.format(event, await self._context(event))
            delivery = await self._sink.deliver(message)
        except Exception as e:
            # One event that cannot be sent must not end the batch
            logger.exception(f"Delivery of {event.short_id} raised")
            delivery = DeliveryResult.failed(None, f"{type(e).__name__}: {e}")
        return self._delivered(event, delivery), delivery

    def _admit(self, event: NostrEvent, now: int, last_seen: int) -> Verdict:
        verdict = self._validator.validate(event)
        if not verdict:
            return verdict
        verdict = self._relevance.admit(event)
        if not verdict:
            return verdict
        return self._window.admit(
            event, now, last_seen, self._config.ingestion.lookback_seconds
        )

    async def _context(self, event: NostrEvent) -> EventContext:
        if self._resolver is None:
            return EventContext()
        try:
            return await self._resolver.resolve(event)
        except Exception as e:
            # Context is decoration only; delivery proceeds without it
            logger.warning(f"Context lookup failed for {event.short_id}: {e}")
            return EventContext()

    def _rejected(self, event: NostrEvent, verdict: Verdict) -> EventOutcome:
        logger.info(f"[REJECT] Event {event.short_id}: {verdict.reason.value} {verdict.detail}".rstrip())
        self._audit.record(
            AuditEventType.EVENT_REJECTED, verdict.reason.value, event.id, detail=verdict.detail,
        )
        return EventOutcome(
            event_id=event.id,
            created_at=event.created_at,
            disposition=EventDisposition.REJECTED,
            reason=verdict.reason,
            error=Error.now(verdict.reason.error_code, verdict.detail or verdict.reason.value),
        )

    def _delivered(self, event: NostrEvent, delivery: DeliveryResult) -> EventOutcome:
        if delivery.delivered:
            evicted = self._ledger.insert(event.id)
            if evicted is not None:
                logger.debug(f"Ledger full, evicted {evicted[:8]}...")
            logger.info(f"Forwarded event {event.short_id} (kind {event.kind})")
            self._audit.record(AuditEventType.EVENT_FORWARDED, "forwarded", event.id)
            return EventOutcome(event.id, event.created_at, EventDisposition.FORWARDED)

        if delivery.rate_limited:
            self._audit.record(
                AuditEventType.RATE_LIMITED, "rate_limited", event.id, retry_after=delivery.retry_after,
            )
            return EventOutcome(
                event.id, event.created_at, EventDisposition.RATE_LIMITED,
                error=Error.now(ErrorCode.SINK_RATE_LIMITED, delivery.error_message or "rate limited"),
            )

        self._audit.record(
            AuditEventType.DELIVERY_FAILED, "delivery_failed", event.id, status=delivery.status_code,
        )
        return EventOutcome(
            event.id, event.created_at, EventDisposition.DELIVERY_FAILED,
            error=Error.now(ErrorCode.SINK_FAILED, delivery.error_message or "delivery failed"),
        )

    @staticmethod
    def _not_attempted(events: Iterable[NostrEvent]) -> List[EventOutcome]:
        return [
            EventOutcome(e.id, e.created_at, EventDisposition.NOT_ATTEMPTED)
            for e in events
        ]

    # =========================================================================
    # CURSOR
    # =========================================================================

    def _update_cursor(
        self,
        events: Sequence[NostrEvent],
        since: Optional[int],
        status: CycleStatus,
        now: int,
    ) -> int:
        """
        Advance over every timestamp in the batch, capped at `now`.

        Rejected events count too, but nothing can move the watermark past
        the current time: a forged future timestamp would otherwise point
        every later query at the future.
        """
        before = self._cursor.last_seen

        if status == CycleStatus.RATE_LIMITED and self._held < self._hold_cycles:
            self._held += 1
            self._audit.record(
                AuditEventType.CURSOR_HELD, "rate_limit_hold",
                held=self._held, limit=self._hold_cycles, last_seen=before,
            )
            logger.warning(
                f"Holding cursor at {before} while rate limited ({self._held}/{self._hold_cycles})"
            )
            return before

        self._held = 0
        after = self._cursor.advance((e.created_at for e in events), floor=since, ceiling=now)
        if after != before:
            self._audit.record(AuditEventType.CURSOR_ADVANCED, "advance", before=before, after=after)
        return after

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def status(self) -> dict:
        last = self._last_report
        return {
            'status': 'active',
            'last_seen': self._cursor.last_seen,
            'ledger': {'size': len(self._ledger), 'capacity': self._ledger.capacity},
            'rate_limit_hold': {'held': self._held, 'limit': self._hold_cycles},
            'last_cycle': None if last is None else {
                'status': last.status.value,
                'processed': len(last.outcomes),
                'forwarded': last.forwarded_count,
                'retry_after': last.retry_after,
                'error': last.error.message if last.error else None,
            },
            'audit': self._audit.summary(),
        }

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def ledger(self) -> DedupLedger:
        return self._ledger

    @property
    def cursor(self) -> ProgressCursor:
        return self._cursor

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    @property
    def clock(self) -> LogicalClock:
        return self._clock

    @property
    def last_report(self) -> Optional[CycleReport]:
        return self._last_report
