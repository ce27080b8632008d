"""
Fan-in Merger

Combines per-relay event lists into one ordered, id-unique batch.

INVARIANTS:
===========
- Each id appears at most once; the first copy seen wins
- Output is sorted by created_at ascending, ties broken by id
- Events without an id are passed through for the validator to reject
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Tuple

from bridge.contracts.events import NostrEvent


class FanInMerger:

    def merge(self, batches: Iterable[Iterable[NostrEvent]]) -> Tuple[NostrEvent, ...]:
        """
        Merge event groups, earlier groups taking precedence.

        Callers pass primary sources before fallback sources.
        """
        by_id: Dict[str, NostrEvent] = {}
        anonymous: List[NostrEvent] = []

        for batch in batches:
            for event in batch:
                if not isinstance(event.id, str):
                    anonymous.append(event)
                elif event.id not in by_id:
                    by_id[event.id] = event

        merged = list(by_id.values()) + anonymous
        merged.sort(key=lambda e: e.sort_key)
        return tuple(merged)
