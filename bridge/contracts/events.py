"""
Event and Outcome Contracts

These contracts define the explicit interfaces between layers.
Sources produce NostrEvent, the admission pipeline produces EventOutcome
and CycleReport, the observability layer consumes AuditLogEntry.

INVARIANTS:
===========
1. NostrEvent is immutable once constructed and never mutated after receipt
2. NostrEvent.from_dict never raises on missing keys - the validator decides
3. Every candidate event yields exactly one EventOutcome per cycle
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from enum import Enum
import json

from .base import Error, RejectReason, Timestamp


# =============================================================================
# PROTOCOL CONSTANTS
# =============================================================================

class EventKind:
    """Event kind numbers used by the bridge (fixed by the Nostr protocol)."""
    METADATA = 0
    TEXT_NOTE = 1
    REPOST = 6
    REACTION = 7
    ZAP_RECEIPT = 9735

    NAMES = {
        METADATA: "Metadata",
        TEXT_NOTE: "Text Note",
        REPOST: "Repost",
        REACTION: "Reaction",
        ZAP_RECEIPT: "Zap",
    }

    @classmethod
    def name_of(cls, kind: Optional[int]) -> str:
        return cls.NAMES.get(kind, f"Unknown ({kind})")


# =============================================================================
# SOURCE EVENT
# =============================================================================

@dataclass(frozen=True)
class NostrEvent:
    """
    IMMUTABLE signed, content-addressed post record.

    Fields are Optional because events arrive from untrusted relays;
    presence and typing are checked by the validator, not here.
    """
    id: Optional[str]
    pubkey: Optional[str]
    created_at: Optional[int]
    kind: Optional[int]
    tags: Optional[Tuple[Tuple[Any, ...], ...]]
    content: Optional[str]
    sig: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> NostrEvent:
        """Build from a relay/webhook JSON object. Missing keys become None."""
        raw_tags = data.get('tags')
        tags = None
        if isinstance(raw_tags, (list, tuple)) and all(isinstance(t, (list, tuple)) for t in raw_tags):
            tags = tuple(tuple(t) for t in raw_tags)

        return cls(
            id=data.get('id'),
            pubkey=data.get('pubkey'),
            created_at=data.get('created_at'),
            kind=data.get('kind'),
            tags=tags,
            content=data.get('content'),
            sig=data.get('sig'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'pubkey': self.pubkey,
            'created_at': self.created_at,
            'kind': self.kind,
            'tags': [list(t) for t in (self.tags or ())],
            'content': self.content,
            'sig': self.sig,
        }

    @property
    def short_id(self) -> str:
        return f"{self.id[:8]}..." if isinstance(self.id, str) else "<no-id>"

    @property
    def sort_key(self) -> Tuple[int, str]:
        """Ascending created_at, ties broken by id (deterministic)."""
        created = self.created_at if isinstance(self.created_at, int) else 0
        return (created, self.id if isinstance(self.id, str) else "")

    def tag_values(self, name: str) -> Tuple[str, ...]:
        """Second element of every tag whose first element is `name`."""
        return tuple(
            t[1] for t in (self.tags or ())
            if len(t) > 1 and t[0] == name
        )

    def first_tag_value(self, name: str) -> Optional[str]:
        values = self.tag_values(name)
        return values[0] if values else None

    @property
    def is_reply(self) -> bool:
        return self.first_tag_value('e') is not None


# =============================================================================
# PIPELINE OUTCOMES
# =============================================================================

class EventDisposition(Enum):
    """What happened to one candidate event."""
    FORWARDED = "forwarded"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"
    DELIVERY_FAILED = "delivery_failed"
    RATE_LIMITED = "rate_limited"
    NOT_ATTEMPTED = "not_attempted"  # batch stopped by sink backpressure


@dataclass(frozen=True)
class EventOutcome:
    """Immutable per-event result of one pass through the pipeline."""
    event_id: Optional[str]
    created_at: Optional[int]
    disposition: EventDisposition
    reason: Optional[RejectReason] = None
    error: Optional[Error] = None

    @property
    def forwarded(self) -> bool:
        return self.disposition == EventDisposition.FORWARDED

    def to_dict(self) -> dict:
        return {
            'id': self.event_id,
            'created_at': self.created_at,
            'status': self.disposition.value,
            'reason': self.reason.value if self.reason else None,
            'error': self.error.message if self.error else None,
        }


class CycleStatus(Enum):
    """Batch-level status of one poll or push cycle."""
    COMPLETED = "completed"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class CycleReport:
    """
    Result of one batch through the pipeline.

    Failed cycles are FIRST-CLASS outputs, not exceptions.
    """
    status: CycleStatus
    outcomes: Tuple[EventOutcome, ...]
    cursor_before: int
    cursor_after: int
    since: Optional[int] = None
    retry_after: Optional[float] = None
    error: Optional[Error] = None
    sources_ok: int = 0
    sources_failed: int = 0

    @property
    def forwarded_count(self) -> int:
        return sum(1 for o in self.outcomes if o.forwarded)

    def count(self, disposition: EventDisposition) -> int:
        return sum(1 for o in self.outcomes if o.disposition == disposition)

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'processed': len(self.outcomes),
            'forwarded': self.forwarded_count,
            'since': self.since,
            'last_seen': self.cursor_after,
            'retry_after': self.retry_after,
            'error': self.error.message if self.error else None,
            'sources': {'ok': self.sources_ok, 'failed': self.sources_failed},
            'events': [o.to_dict() for o in self.outcomes],
        }


# =============================================================================
# OBSERVABILITY CONTRACTS
# =============================================================================

class AuditEventType(Enum):
    """Types of audit events."""
    EVENT_RECEIVED = "event_received"
    EVENT_REJECTED = "event_rejected"
    EVENT_DUPLICATE = "event_duplicate"
    EVENT_FORWARDED = "event_forwarded"
    DELIVERY_FAILED = "delivery_failed"
    RATE_LIMITED = "rate_limited"
    CURSOR_ADVANCED = "cursor_advanced"
    CURSOR_HELD = "cursor_held"
    SOURCE_FAILED = "source_failed"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    event_type: AuditEventType
    timestamp: Timestamp
    layer: str  # Which layer generated this
    action: str
    entity_id: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


# =============================================================================
# DELIVERY CONTEXT
# =============================================================================

@dataclass(frozen=True)
class Profile:
    """Subset of a kind-0 metadata record used for display."""
    pubkey: str
    name: Optional[str] = None
    display_name: Optional[str] = None
    picture: Optional[str] = None

    @classmethod
    def from_metadata_event(cls, event: NostrEvent) -> Optional[Profile]:
        """Parse the JSON content of a kind-0 event. None when unparseable."""
        try:
            data = json.loads(event.content or "")
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None

        def text(key: str) -> Optional[str]:
            value = data.get(key)
            return value if isinstance(value, str) and value else None

        return cls(
            pubkey=event.pubkey or "",
            name=text('name'),
            display_name=text('display_name'),
            picture=text('picture'),
        )

    @property
    def label(self) -> Optional[str]:
        return self.name or self.display_name


@dataclass(frozen=True)
class EventContext:
    """
    Everything the formatter may show besides the event itself.

    All fields are optional: formatting never fails for lack of context.
    """
    author: Optional[Profile] = None
    parent: Optional[NostrEvent] = None
    parent_author: Optional[Profile] = None
