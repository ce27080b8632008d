"""
Progress Cursor

Watermark of the latest event timestamp seen by the polling cycle.

INVARIANTS:
===========
- last_seen never decreases within a process lifetime
- last_seen == 0 means cold: the next query looks back lookback_seconds
- Advance is driven by timestamps SEEN, not by delivery success
- Advance never passes the ceiling it is given (the current time)
"""

from __future__ import annotations
from typing import Iterable, Optional


class ProgressCursor:

    def __init__(self, last_seen: int = 0):
        if last_seen < 0:
            raise ValueError("last_seen cannot be negative")
        self._last_seen = last_seen

    @property
    def last_seen(self) -> int:
        return self._last_seen

    @property
    def is_cold(self) -> bool:
        return self._last_seen == 0

    def query_since(self, now: int, lookback_seconds: int) -> int:
        """Lower time bound for the next poll."""
        if self._last_seen > 0:
            return self._last_seen
        return max(0, now - lookback_seconds)

    def advance(
        self,
        timestamps: Iterable[int],
        floor: Optional[int] = None,
        ceiling: Optional[int] = None,
    ) -> int:
        """
        Move the watermark to max(last_seen, floor, max(timestamps)).

        `floor` is the query lower bound of a cold poll, so a cold process
        that sees nothing still leaves its seed behind. Timestamps above
        `ceiling` count as `ceiling`.
        """
        candidates = [self._last_seen]
        if floor is not None:
            candidates.append(floor)
        seen = [t for t in timestamps if isinstance(t, int) and not isinstance(t, bool)]
        if ceiling is not None:
            seen = [min(t, ceiling) for t in seen]
        candidates.extend(seen)
        self._last_seen = max(candidates)
        return self._last_seen

    def __repr__(self) -> str:
        return f"ProgressCursor(last_seen={self._last_seen})"
