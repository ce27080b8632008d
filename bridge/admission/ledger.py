"""
Dedup Ledger

Bounded, insertion-ordered set of forwarded event ids.

INVARIANTS:
===========
- len(ledger) <= capacity at all times
- Eviction is strict FIFO by insertion order, never by event timestamp
- Membership tests do not change eviction order
- State lives for the process lifetime only
"""

from __future__ import annotations
from collections import OrderedDict
from typing import Iterable, Iterator, Optional, Tuple


DEFAULT_CAPACITY = 200


class DedupLedger:
    """
    Exact-identity dedup for forwarded events.

    Ids are content hashes, so two events with the same id are the same
    event. Capacity rollover is the only source of false negatives.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, initial: Iterable[str] = ()):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()
        for event_id in initial:
            self.insert(event_id)

    def contains(self, event_id: str) -> bool:
        return event_id in self._ids

    def insert(self, event_id: str) -> Optional[str]:
        """
        Add an id. Returns the evicted id when capacity was exceeded.

        Re-inserting a present id is a no-op and keeps its original position.
        """
        if event_id in self._ids:
            return None

        self._ids[event_id] = None
        if len(self._ids) > self._capacity:
            evicted, _ = self._ids.popitem(last=False)
            return evicted
        return None

    def snapshot(self) -> Tuple[str, ...]:
        """Ids in insertion order, oldest first."""
        return tuple(self._ids)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __repr__(self) -> str:
        return f"DedupLedger(size={len(self._ids)}, capacity={self._capacity})"
