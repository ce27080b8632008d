"""
Observability & Audit Layer

RESPONSIBILITY: Logging setup and the append-only audit trail
ALLOWED INPUTS: AuditLogEntry records from other layers
OUTPUTS: Filtered entries, per-type counts, status summaries

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Filter or interpret events (only record them)
- Make decisions based on logged data
- Block or delay other layer operations
"""

from __future__ import annotations
from collections import Counter
from typing import Dict, List, Optional, Tuple
import logging
import sys

# ONLY import from contracts - never from other layers' implementations
from ..contracts.base import Timestamp
from ..contracts.events import AuditLogEntry, AuditEventType


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(debug: bool = False):
    """
    Configure logging for the bridge.

    Uses basicConfig to set up:
    - Root logger level: INFO, or DEBUG when debug is set
    - Format: timestamp, level, name, message
    - Handler: StreamHandler to stdout
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # Per-frame websocket chatter is only useful when chasing relay bugs
    logging.getLogger("websockets").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.INFO if debug else logging.WARNING)


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class AuditTrail:
    """
    Append-only collector of audit entries.

    Keeps the most recent `max_entries` entries for inspection, while the
    per-type counters cover the whole process lifetime.
    """

    def __init__(self, layer_name: str = "bridge", max_entries: int = 1000):
        self._layer_name = layer_name
        self._max_entries = max_entries
        self._entries: List[AuditLogEntry] = []
        self._counts: Counter = Counter()
        self._sequence: int = 0

    def collect(self, entry: AuditLogEntry):
        """Collect an audit entry (append-only)."""
        self._entries.append(entry)
        if len(self._entries) > self._max_entries:
            del self._entries[0]
        self._counts[entry.event_type] += 1
        self._sequence += 1

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        entity_id: Optional[str] = None,
        layer: Optional[str] = None,
        **metadata: object,
    ) -> AuditLogEntry:
        """Build and collect an entry stamped with the current time."""
        entry = AuditLogEntry(
            event_type=event_type,
            timestamp=Timestamp.now(),
            layer=layer or self._layer_name,
            action=action,
            entity_id=entity_id,
            metadata=tuple((k, str(v)) for k, v in sorted(metadata.items())),
        )
        self.collect(entry)
        return entry

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None,
        entity_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        entries = self._entries
        if event_type:
            entries = [e for e in entries if e.event_type == event_type]
        if entity_id:
            entries = [e for e in entries if e.entity_id == entity_id]
        return list(entries)

    def count(self, event_type: AuditEventType) -> int:
        return self._counts[event_type]

    def counts(self) -> Dict[str, int]:
        return {t.value: self._counts[t] for t in AuditEventType}

    def summary(self, recent: int = 20) -> Dict[str, object]:
        """Snapshot suitable for a status endpoint."""
        tail: Tuple[AuditLogEntry, ...] = tuple(self._entries[-recent:]) if recent else ()
        return {
            'total': self._sequence,
            'counts': self.counts(),
            'recent': [
                {
                    'type': e.event_type.value,
                    'at': e.timestamp.to_iso(),
                    'action': e.action,
                    'id': e.entity_id,
                    **dict(e.metadata),
                }
                for e in tail
            ],
        }

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return self._sequence


__all__ = ['setup_logging', 'AuditTrail', 'LOG_FORMAT']
