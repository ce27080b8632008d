"""
Relay Ingestion Contracts

Immutable data structures for reading events from Nostr relays.

BOUNDARY: Ingestion Layer
All relay data enters through these contracts.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from bridge.contracts.events import EventKind, NostrEvent


# =============================================================================
# ENUMS
# =============================================================================

class RelayRole(Enum):
    """Which relay set a source belongs to."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class FetchStatus(Enum):
    """Status of a relay query."""
    SUCCESS = "success"              # EOSE received
    TIMEOUT = "timeout"              # no EOSE in time; whatever arrived is kept
    CLOSED = "closed"                # relay refused the subscription
    NETWORK_ERROR = "network_error"  # could not connect or connection dropped
    PROTOCOL_ERROR = "protocol_error"

    @property
    def responded(self) -> bool:
        """A timed-out relay is quiet, not broken."""
        return self in (FetchStatus.SUCCESS, FetchStatus.TIMEOUT)


class StreamMarker(Enum):
    """Non-event items yielded by a live subscription."""
    BACKLOG_EXHAUSTED = "backlog_exhausted"


# =============================================================================
# SOURCE CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class RelaySource:
    """Configuration for a single relay."""
    url: str
    role: RelayRole = RelayRole.PRIMARY

    @property
    def source_id(self) -> str:
        return self.url.split('://', 1)[-1].rstrip('/')

    def __hash__(self):
        return hash(self.url)


@dataclass(frozen=True)
class EventFilter:
    """Relay subscription filter (NIP-01)."""
    authors: Tuple[str, ...] = ()
    kinds: Tuple[int, ...] = ()
    ids: Tuple[str, ...] = ()
    p_tags: Tuple[str, ...] = ()
    since: Optional[int] = None
    until: Optional[int] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.ids:
            result['ids'] = list(self.ids)
        if self.authors:
            result['authors'] = list(self.authors)
        if self.kinds:
            result['kinds'] = list(self.kinds)
        if self.p_tags:
            result['#p'] = list(self.p_tags)
        if self.since is not None:
            result['since'] = self.since
        if self.until is not None:
            result['until'] = self.until
        if self.limit is not None:
            result['limit'] = self.limit
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EventFilter:
        return cls(
            authors=tuple(data.get('authors') or ()),
            kinds=tuple(data.get('kinds') or ()),
            ids=tuple(data.get('ids') or ()),
            p_tags=tuple(data.get('#p') or ()),
            since=data.get('since'),
            until=data.get('until'),
            limit=data.get('limit'),
        )


def account_filters(pubkey: str, kinds: Tuple[int, ...], since: Optional[int] = None) -> Tuple[EventFilter, ...]:
    """
    Filters for everything the bridge relays for one account.

    Zap receipts are signed by the lightning service, so they are matched
    on the recipient p tag; every other kind on the author.
    """
    authored = tuple(k for k in kinds if k != EventKind.ZAP_RECEIPT)
    filters = []
    if authored:
        filters.append(EventFilter(authors=(pubkey,), kinds=authored, since=since))
    if EventKind.ZAP_RECEIPT in kinds:
        filters.append(EventFilter(kinds=(EventKind.ZAP_RECEIPT,), p_tags=(pubkey,), since=since))
    return tuple(filters)


# =============================================================================
# FETCH RESULTS (failures are first-class)
# =============================================================================

@dataclass(frozen=True)
class FetchResult:
    """
    Result of one relay query.

    ALWAYS created, even on failure - failures are first-class data.
    """
    source: RelaySource
    status: FetchStatus
    attempted_at: datetime
    completed_at: datetime
    events: Tuple[NostrEvent, ...] = ()
    error_message: Optional[str] = None
    notices: Tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return not self.status.responded

    @property
    def duration_ms(self) -> int:
        return int((self.completed_at - self.attempted_at).total_seconds() * 1000)


@dataclass(frozen=True)
class FetchBatch:
    """Results of one query against a relay set."""
    batch_id: str
    started_at: datetime
    completed_at: datetime
    results: Tuple[FetchResult, ...] = field(default_factory=tuple)

    @property
    def ok_count(self) -> int:
        return sum(1 for r in self.results if not r.failed)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def all_failed(self) -> bool:
        return bool(self.results) and self.ok_count == 0

    @property
    def event_count(self) -> int:
        return sum(len(r.events) for r in self.results)

    def event_groups(self) -> Tuple[Tuple[NostrEvent, ...], ...]:
        """Per-source event tuples, primary sources first."""
        ordered = sorted(
            self.results,
            key=lambda r: 0 if r.source.role == RelayRole.PRIMARY else 1,
        )
        return tuple(r.events for r in ordered)

    def failures(self) -> Tuple[FetchResult, ...]:
        return tuple(r for r in self.results if r.failed)

    @staticmethod
    def combine(*batches: FetchBatch) -> FetchBatch:
        present = [b for b in batches if b is not None]
        return FetchBatch(
            batch_id="+".join(b.batch_id for b in present),
            started_at=min(b.started_at for b in present),
            completed_at=max(b.completed_at for b in present),
            results=tuple(r for b in present for r in b.results),
        )
